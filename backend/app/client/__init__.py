"""Client side of the Telegram login bridge.

- login_flow: pure state machine for one login attempt
- scheduling: cancellable repeating/one-shot timers
- bridge_api: httpx client for the bridge endpoints
- poller: runs a login attempt against the bridge API
"""
