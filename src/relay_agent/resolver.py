"""Exact-then-fuzzy resolution of loose names to platform identifiers."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from relay_agent import similarity
from relay_agent.config import ResolverConfig
from relay_agent.directory.ports import DirectoryProvider, MessageTransport
from relay_agent.types import DirectoryEntity, ResolvedEntityMatch

logger = logging.getLogger(__name__)

# Checked in this order; the first level with any match wins.
_STRUCTURAL_CHECKS: tuple[tuple[str, Callable[[str, str], bool]], ...] = (
    ("exact", lambda name, handle: name == handle),
    ("prefix", lambda name, handle: name.startswith(handle)),
    ("suffix", lambda name, handle: name.endswith(handle)),
    ("substring", lambda name, handle: handle in name),
)


class EntityResolver:
    """Maps `@handle`, `#channel` or bare guild names to platform ids.

    Member references are matched structurally first (exact, prefix, suffix,
    substring over every name variant) and only fall back to Jaro-Winkler
    scoring when nothing matches structurally. Channel and guild references are
    scored directly and the global best is kept across all guilds.

    Equal scores are broken by the smallest entity id so the outcome does not
    depend on the order the platform lists entities in. A failed resolution
    returns `None`; nothing here raises for a missing match.
    """

    def __init__(
        self,
        directory: DirectoryProvider,
        *,
        transport: MessageTransport | None = None,
        config: ResolverConfig | None = None,
    ) -> None:
        self.directory = directory
        self.transport = transport
        self.config = config or ResolverConfig()

    async def resolve(self, reference: str) -> ResolvedEntityMatch | None:
        """Resolve a message target: `@user` to a DM channel, else a channel."""
        reference = reference.strip()
        try:
            if reference.startswith("@"):
                return await self.resolve_direct_message(reference)
            return await self.resolve_channel(reference)
        except Exception:
            logger.exception("Resolution of %r failed", reference)
            return None

    async def resolve_direct_message(self, handle: str) -> ResolvedEntityMatch | None:
        normalized = _normalize(handle, "@")
        if not normalized:
            return None

        channels = await self.directory.list_direct_message_channels()
        match = self.match_member(normalized, channels)
        if match is not None:
            return match

        if self.transport is None:
            return None

        # No open DM with that person yet: look them up among guild members.
        members: dict[str, DirectoryEntity] = {}
        for guild in await self.directory.list_guilds():
            for member in await self.directory.list_members(guild.id):
                members.setdefault(member.id, member)

        member_match = self.match_member(normalized, members.values())
        if member_match is None:
            return None

        channel_id = await self.transport.open_direct_message(member_match.id)
        if channel_id is None:
            return None
        return ResolvedEntityMatch(
            id=channel_id,
            display_name=member_match.display_name,
            score=member_match.score,
        )

    async def resolve_channel(self, handle: str) -> ResolvedEntityMatch | None:
        normalized = _normalize(handle, "#")
        if not normalized:
            return None

        best: tuple[float, DirectoryEntity] | None = None
        for guild in await self.directory.list_guilds():
            channels = await self.directory.list_channels(guild.id)
            candidate = _best_scored(normalized, channels)
            if candidate is not None and _beats(candidate, best):
                best = candidate

        return self._accept(best, rounded=False)

    async def resolve_guild(self, name: str) -> ResolvedEntityMatch | None:
        normalized = _normalize(name, "")
        if not normalized:
            return None
        guilds = await self.directory.list_guilds()
        return self._accept(_best_scored(normalized, guilds), rounded=False)

    def match_member(
        self, handle: str, candidates: Iterable[DirectoryEntity]
    ) -> ResolvedEntityMatch | None:
        """Match a lowercase handle against a snapshot of member-like entities."""
        entities = list(candidates)
        handle = handle.lower()
        if not handle or not entities:
            return None

        for _level, check in _STRUCTURAL_CHECKS:
            hits = [
                entity
                for entity in entities
                if any(check(variant, handle) for variant in entity.name_variants())
            ]
            if hits:
                entity = min(hits, key=lambda item: _id_order(item.id))
                return ResolvedEntityMatch(id=entity.id, display_name=entity.name, score=1.0)

        return self._accept(_best_scored(handle, entities), rounded=True)

    def _accept(
        self, best: tuple[float, DirectoryEntity] | None, *, rounded: bool
    ) -> ResolvedEntityMatch | None:
        if best is None:
            return None
        score, entity = best
        comparable = round(score, 1) if rounded else score
        if comparable < self.config.tolerance:
            logger.debug(
                "Best match %r scored %.3f, below tolerance", entity.name, score
            )
            return None
        return ResolvedEntityMatch(id=entity.id, display_name=entity.name, score=score)


def _normalize(handle: str, sigil: str) -> str:
    handle = handle.strip().lower()
    if sigil and handle.startswith(sigil):
        handle = handle[len(sigil) :]
    return handle.strip()


def _entity_score(handle: str, entity: DirectoryEntity) -> float:
    return max(
        (similarity.score(handle, variant) for variant in entity.name_variants()),
        default=0.0,
    )


def _best_scored(
    handle: str, entities: Iterable[DirectoryEntity]
) -> tuple[float, DirectoryEntity] | None:
    best: tuple[float, DirectoryEntity] | None = None
    for entity in entities:
        candidate = (_entity_score(handle, entity), entity)
        if _beats(candidate, best):
            best = candidate
    return best


def _beats(
    candidate: tuple[float, DirectoryEntity],
    current: tuple[float, DirectoryEntity] | None,
) -> bool:
    if current is None:
        return True
    if candidate[0] != current[0]:
        return candidate[0] > current[0]
    return _id_order(candidate[1].id) < _id_order(current[1].id)


def _id_order(entity_id: str) -> tuple[int, int, str]:
    # Snowflake ids compare numerically; anything else falls back to text.
    if entity_id.isdigit():
        return (0, int(entity_id), "")
    return (1, 0, entity_id)
