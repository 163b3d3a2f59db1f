"""Runtime assembly and the asyncio entry point for a scanning run."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from camera import BaseCamera, create_camera_from_loaded_config
from core.contracts import ScanProgress
from core.coordinator import ScanCoordinator
from core.frame_loop import FrameLoop
from core.lookup import LookupTable
from decode import QrDecoder, create_decoder
from isolate import IsolationStrategy, create_strategies_from_loaded_config
from output.log import LogOutput
from output.manager import OutputManager

L = logging.getLogger("chroma_scan.runtime")


@dataclass
class RuntimeBuildConfig:
    box_size: int = 250
    timeout_ms: int = 30000
    guard_release_ms: int = 100
    frame_interval_ms: int = 33
    preview_enabled: bool = True
    enable_http: bool = False
    http_host: str = "0.0.0.0"
    http_port: int = 8000
    preview_max_edge: int = 960


def build_runtime_config_from_loaded_config(cfg) -> RuntimeBuildConfig:
    return RuntimeBuildConfig(
        box_size=int(cfg.scan.box_size),
        timeout_ms=int(cfg.scan.timeout_ms),
        guard_release_ms=int(cfg.scan.guard_release_ms),
        frame_interval_ms=int(cfg.scan.frame_interval_ms),
        preview_enabled=bool(cfg.output.preview_enabled),
        enable_http=bool(cfg.output.hmi.enabled),
        http_host=str(cfg.output.hmi.host),
        http_port=int(cfg.output.hmi.port),
        preview_max_edge=int(cfg.output.hmi.preview_max_edge),
    )


class ScanRuntime:
    """Owns the coordinator, its frame loop, and the output channels for one process."""

    def __init__(
        self,
        coordinator: ScanCoordinator,
        output_mgr: OutputManager,
        frame_loop: FrameLoop,
        hmi=None,
    ):
        self.coordinator = coordinator
        self.output_mgr = output_mgr
        self.frame_loop = frame_loop
        self.hmi = hmi
        self.last_progress: ScanProgress | None = None
        self._finished: asyncio.Event | None = None
        coordinator.add_finished_callback(self._on_finished)

    def _on_finished(self, progress: ScanProgress):
        self.last_progress = progress
        if self._finished is not None:
            self._finished.set()

    async def run(self, runtime_limit_s: float | None = None) -> ScanProgress | None:
        """
        Scan until the session completes or expires. With the HMI enabled the
        process keeps serving (a finished session can be restarted from the
        page) until runtime_limit_s or cancellation.
        """
        self._finished = asyncio.Event()
        if self.hmi is not None:
            await self.hmi.start()
        try:
            self.coordinator.start_session()
            if self.hmi is None:
                waiter = self._finished.wait()
            else:
                waiter = asyncio.Event().wait()
            try:
                await asyncio.wait_for(waiter, timeout=runtime_limit_s)
            except asyncio.TimeoutError:
                L.info("runtime limit reached (%.1fs)", runtime_limit_s or 0.0)
        finally:
            self.coordinator.stop_session()
            self.frame_loop.cancel_timers()
            if self.hmi is not None:
                await self.hmi.stop()
        return self.last_progress or self.coordinator.progress()


def build_runtime(
    camera: BaseCamera,
    *,
    strategies: list[IsolationStrategy],
    decoder: QrDecoder,
    lookup: LookupTable,
    config: Optional[RuntimeBuildConfig] = None,
    frame_loop: FrameLoop | None = None,
) -> ScanRuntime:
    cfg = config or RuntimeBuildConfig()
    output_mgr = OutputManager()
    output_mgr.add_channel(LogOutput())
    loop = frame_loop or FrameLoop(cfg.frame_interval_ms / 1000.0)
    coordinator = ScanCoordinator(
        camera,
        strategies,
        decoder,
        lookup,
        output_mgr,
        loop,
        box_size=cfg.box_size,
        timeout_ms=cfg.timeout_ms,
        guard_release_ms=cfg.guard_release_ms,
        preview_enabled=cfg.preview_enabled and cfg.enable_http,
    )
    hmi = None
    if cfg.enable_http:
        from output.hmi import HmiOutput

        hmi = HmiOutput(
            cfg.http_host,
            cfg.http_port,
            output_mgr.board,
            coordinator,
            preview_max_edge=cfg.preview_max_edge,
        )
    return ScanRuntime(coordinator, output_mgr, loop, hmi=hmi)


def build_runtime_from_loaded_config(cfg) -> ScanRuntime:
    return build_runtime(
        create_camera_from_loaded_config(cfg),
        strategies=create_strategies_from_loaded_config(cfg),
        decoder=create_decoder(cfg.decode.impl),
        lookup=LookupTable.from_yaml(cfg.paths["lookup"]),
        config=build_runtime_config_from_loaded_config(cfg),
    )


__all__ = [
    "RuntimeBuildConfig",
    "ScanRuntime",
    "build_runtime",
    "build_runtime_config_from_loaded_config",
    "build_runtime_from_loaded_config",
]
