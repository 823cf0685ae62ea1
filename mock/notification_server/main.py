from collections import defaultdict
from fastapi import FastAPI, HTTPException, Request

app = FastAPI(title="Mock Notification Dispatcher", version="1.0.0")
# In-memory inbox per user, reset on restart
INBOX: dict[str, list[dict]] = defaultdict(list)

@app.get("/health")
def health(): return {"status": "ok"}

@app.post("/notifications", status_code=202)
async def receive(request: Request):
    event = await request.json()
    user_id = event.get("user_id")
    if not user_id:
        raise HTTPException(status_code=422, detail="user_id required")
    INBOX[user_id].append(event)
    return {"accepted": True, "count": len(INBOX[user_id])}

@app.get("/notifications")
def list_notifications(user_id: str):
    return {"user_id": user_id, "notifications": INBOX.get(user_id, [])}
