"""Ask the bridge for weather alerts the way a polling client would.

Run the server first (``python examples/server.py``), then:
uv run python examples/poll_client.py CA
"""

import asyncio
import json
import sys

import aiohttp

SERVER_URL = "http://localhost:8080"
POLL_INTERVAL = 0.5
MAX_POLLS = 20


def parse_events(text: str) -> list[dict[str, str]]:
    events = []
    for frame in filter(None, text.split("\n\n")):
        events.append(dict(line.split(": ", 1) for line in frame.split("\n")))
    return events


async def get_alerts(state: str) -> None:
    async with aiohttp.ClientSession(SERVER_URL) as session:
        async with session.get("/sse") as response:
            [connected] = parse_events(await response.text())
        connection_id = json.loads(connected["data"])["connectionId"]
        print(f"Connected as {connection_id}")

        call = {"type": "tool_call", "name": "get-alerts", "parameters": {"state": state}}
        async with session.post("/messages", params={"connectionId": connection_id}, json=call) as response:
            print("Delivered:", await response.json())

        for _ in range(MAX_POLLS):
            async with session.get("/poll", params={"connectionId": connection_id}) as response:
                events = parse_events(await response.text())
            for event in events:
                if event["event"] == "message":
                    result = json.loads(event["data"])
                    for content in result.get("content", []):
                        print(content.get("text"))
                    return
            await asyncio.sleep(POLL_INTERVAL)
        print("No answer received")


if __name__ == "__main__":
    asyncio.run(get_alerts(sys.argv[1] if len(sys.argv) > 1 else "CA"))
