import asyncio
import logging
import math
import random
from typing import Awaitable, Callable, Optional

from core.models.config_data import SimulatorConfig
from core.models.command import MAX_VIBRATION_LEVEL
from core.models.sensor_data import SensorReading

logger = logging.getLogger(__name__)

ReadingHandler = Callable[[SensorReading], Awaitable[None]]
ChatterHandler = Callable[[str], Awaitable[None]]


class Simulator:
    """
    Generates plausible headband readings while no device is attached.

    Smooth sine drift (breathing/circadian-like cycles) plus uniform jitter,
    one reading per tick. Every ``chatter_every`` ticks a status line is
    published as well, to imitate the device's periodic chatter.
    """

    def __init__(
        self,
        on_reading: ReadingHandler,
        on_chatter: ChatterHandler,
        config: Optional[SimulatorConfig] = None,
        rng: Optional[random.Random] = None,
    ):
        self.config = config or SimulatorConfig()
        self._on_reading = on_reading
        self._on_chatter = on_chatter
        self._rng = rng or random.Random()
        self._task: Optional[asyncio.Task] = None
        self.tick_count = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None

    def start(self):
        """Start (or restart from tick zero) the tick loop. Never runs two loops."""
        if self._task is not None:
            self._task.cancel()
            self._task = None
        self.tick_count = 0
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run())
        logger.info(f"Simulator started (interval: {self.config.interval}s)")

    def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        self._task = None
        logger.info("Simulator stopped")

    def next_reading(self) -> SensorReading:
        """Advance the tick counter and compute the reading for the new tick."""
        self.tick_count += 1
        t = self.tick_count
        cfg = self.config

        heart_rate = cfg.heart_rate_base + math.sin(t * 0.1) * 5 + self._rng.uniform(0, 3)
        temperature = cfg.temperature_base + math.sin(t * 0.05) * 0.3 + self._rng.uniform(0, 0.1)
        stress = cfg.stress_base + math.sin(t * 0.15) * 0.5 + self._rng.uniform(0, 0.3)

        return SensorReading(
            heart_rate=float(round(heart_rate)),
            temperature=round(temperature, 1),
            vibration_level=max(0, min(MAX_VIBRATION_LEVEL, round(stress))),
        )

    async def tick(self):
        """Run one simulation step."""
        reading = self.next_reading()
        await self._on_reading(reading)

        if self.config.chatter_every > 0 and self.tick_count % self.config.chatter_every == 0:
            await self._on_chatter(self.config.chatter_message)

    async def _run(self):
        try:
            while True:
                await asyncio.sleep(self.config.interval)
                try:
                    await self.tick()
                except Exception as e:
                    logger.error(f"Simulator tick {self.tick_count} failed: {e}")
        except asyncio.CancelledError:
            logger.debug("Simulator loop cancelled")
            raise
