"""Drive a running RelayGate through the relay / pause / transfer scenario.

Start the server with RELAYGATE_INITIAL_OWNER set to OWNER below, then:
    python tools/demo_relay.py [base_url]
"""
import json, sys
import requests

BASE = sys.argv[1] if len(sys.argv) > 1 else "http://127.0.0.1:8000"
OWNER = "0x" + "a" * 40
RECIPIENT = "0x" + "b" * 40
SUCCESSOR = "0x" + "c" * 40

def call(method, path, caller=None, body=None):
    headers = {"X-Caller-Identity": caller} if caller else {}
    r = requests.request(method, BASE + path, headers=headers, json=body, timeout=5)
    print(f"{method} {path} -> {r.status_code} {r.text}")
    return r

call("POST", "/relay", OWNER, {"to": RECIPIENT, "message_type": 1, "data": "0xdead"})
call("POST", "/toggle_pause", OWNER)
call("POST", "/relay", OWNER, {"to": RECIPIENT, "message_type": 1, "data": "0xdead"})
call("POST", "/transfer_ownership", OWNER, {"new_owner": SUCCESSOR})
call("POST", "/toggle_pause", OWNER)
call("GET", "/state")

print("Proof:", json.dumps(requests.get(BASE + "/event_log/proof", timeout=5).json(), indent=2))
