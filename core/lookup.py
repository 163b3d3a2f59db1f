"""Payload -> display/spoken text table, loaded once before scanning."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping

import yaml

from core.config.schema import ConfigError
from core.contracts import Channel
from decode.base import normalize_payload

L = logging.getLogger("chroma_scan.lookup")


@dataclass(frozen=True, slots=True)
class LookupEntry:
    display_text: str
    spoken_text: str


class LookupTable:
    def __init__(self, entries: Mapping[Channel, Mapping[str, LookupEntry]] | None = None):
        self._entries: dict[Channel, dict[str, LookupEntry]] = {
            ch: dict((entries or {}).get(ch, {})) for ch in Channel
        }

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None, source: str = "<mapping>"):
        """
        Build from `{channel: {payload: {display_text, spoken_text}}}`.
        Payload keys are normalized the same way decoded payloads are.
        """
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise ConfigError(f"lookup root must be a mapping: {source}")
        entries: dict[Channel, dict[str, LookupEntry]] = {}
        for raw_channel, codes in data.items():
            try:
                channel = Channel.parse(raw_channel)
            except ValueError as e:
                raise ConfigError(f"{e} in {source}") from e
            if codes is None:
                continue
            if not isinstance(codes, Mapping):
                raise ConfigError(f"lookup.{raw_channel} must be a mapping in {source}")
            table = entries.setdefault(channel, {})
            for raw_payload, entry in codes.items():
                payload = normalize_payload(str(raw_payload))
                if payload is None:
                    raise ConfigError(f"empty payload under lookup.{raw_channel} in {source}")
                table[payload] = _build_entry(entry, f"{raw_channel}.{raw_payload}", source)
        return cls(entries)

    @classmethod
    def from_yaml(cls, path: str) -> "LookupTable":
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except OSError as e:
            raise ConfigError(f"Lookup file not readable: {path} ({e})") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"Lookup file is not valid YAML: {path} ({e})") from e
        table = cls.from_mapping(data, source=path)
        L.info("lookup table loaded: %d entries from %s", len(table), path)
        return table

    def lookup(self, channel: Channel, payload: str) -> LookupEntry | None:
        return self._entries[channel].get(payload)

    def __len__(self) -> int:
        return sum(len(v) for v in self._entries.values())


def _build_entry(entry: Any, where: str, source: str) -> LookupEntry:
    if isinstance(entry, str):
        return LookupEntry(display_text=entry, spoken_text=entry)
    if not isinstance(entry, Mapping):
        raise ConfigError(f"lookup.{where} must be a string or mapping in {source}")
    unknown = set(entry) - {"display_text", "spoken_text"}
    if unknown:
        raise ConfigError(
            f"Unknown field lookup.{where}.{sorted(unknown)[0]} in {source}"
        )
    display = entry.get("display_text")
    if not display:
        raise ConfigError(f"lookup.{where}.display_text is required in {source}")
    return LookupEntry(
        display_text=str(display),
        spoken_text=str(entry.get("spoken_text") or display),
    )


__all__ = ["LookupEntry", "LookupTable"]
