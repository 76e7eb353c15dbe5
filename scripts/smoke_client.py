import os
import sys
import json
import requests

BASE_URL = os.environ.get("SMOKE_URL") or os.environ.get("DEV_URL", "http://127.0.0.1:5002")
API = f"{BASE_URL.rstrip('/')}/api"
USER_ID = os.environ.get("SMOKE_USER_ID", "smoke-user")

def get(path: str):
    r = requests.get(f"{API}{path}", timeout=10)
    r.raise_for_status()
    return r

def post(path: str, payload: dict):
    r = requests.post(f"{API}{path}", json=payload, timeout=20)
    r.raise_for_status()
    return r

def main():
    print(f"[smoke] Target: {API}")
    print("[smoke] /health:", get("/health").status_code)
    print("[smoke] /version:", get("/version").status_code)

    for mode in ("text", "semantic", "hybrid"):
        r = post("/rag/search", {"query": "chicken soup", "userId": USER_ID, "limit": 3, "searchType": mode})
        body = r.json()
        print(f"[smoke] /rag/search ({mode} -> {body.get('searchType')}):", r.status_code, json.dumps(body, indent=2)[:300])

    r = post("/rag/ingredients", {"ingredients": ["egg", "flour", "milk"], "userId": USER_ID})
    print("[smoke] /rag/ingredients:", r.status_code, r.json().get("total"))
    r = post("/rag/recommendations", {"userId": USER_ID, "preferences": {"difficulty": "easy"}})
    print("[smoke] /rag/recommendations:", r.status_code, r.json().get("total"))

if __name__ == "__main__":
    try:
        main()
    except Exception as e:
        print("[smoke] FAILED:", e)
        sys.exit(1)
