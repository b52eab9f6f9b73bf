# scripts/simulate_driver.py
"""
Plays a driver's phone against a running server: logs in with the code and
PIN from the admin order page, registers, publishes a scripted route and
marks the order delivered.

    python -m scripts.simulate_driver --code DRV-7K2Q --pin 4821 --steps 6 --interval 2
"""
import argparse
import asyncio
import logging

from app.services.tracking.driver_client import HttpDeliveryClient
from app.services.tracking.publisher import LocationPublisher, Position

logging.basicConfig(level=logging.INFO, format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s")

# Kuwait City towards Salmiya
START = (29.3759, 47.9774)
END = (29.3339, 48.0760)


class ScriptedRoute:
    def __init__(self, steps, interval):
        self.steps = steps
        self.interval = interval
        self.index = 0

    def _at(self, i):
        t = min(i, self.steps) / self.steps
        return Position(
            latitude=START[0] + (END[0] - START[0]) * t,
            longitude=START[1] + (END[1] - START[1]) * t,
        )

    async def current_position(self):
        position = self._at(self.index)
        self.index += 1
        return position

    async def watch(self):
        while True:
            yield self._at(self.index)
            await asyncio.sleep(self.interval / 2)


async def run(base_url, code, pin, name, phone, steps, interval):
    async with HttpDeliveryClient(base_url) as client:
        state = await client.login(code, pin)
        if state.step == "registration":
            state = await client.register(name, phone)
        print(f"🚚 Dashboard: {state.next_url}")

        async with LocationPublisher(ScriptedRoute(steps, interval), client, interval=interval) as publisher:
            await publisher.start()
            await asyncio.sleep(steps * interval)
            await publisher.mark_delivered()
            print(f"✅ Delivered after {publisher.writes} location writes")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Simulate a delivery driver")
    parser.add_argument("--base-url", default="http://localhost:8000")
    parser.add_argument("--code", required=True, help="Driver code, e.g. DRV-7K2Q")
    parser.add_argument("--pin", required=True)
    parser.add_argument("--name", default="Test Driver")
    parser.add_argument("--phone", default="+96550000000")
    parser.add_argument("--steps", type=int, default=6)
    parser.add_argument("--interval", type=float, default=2.0)
    args = parser.parse_args()

    asyncio.run(run(args.base_url, args.code, args.pin, args.name, args.phone, args.steps, args.interval))
