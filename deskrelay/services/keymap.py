from __future__ import annotations

import logging
from typing import Optional

from pydantic import ValidationError

from deskrelay.core.errors import Malformed, NotFound
from deskrelay.models.keymap import DEFAULT_PROFILE, Action, ButtonMapping, Key
from deskrelay.state.redis_keys import MAPPINGS_KEY
from deskrelay.state.redis_state import RedisState

log = logging.getLogger("keymap")


class KeyMapRegistry:
    """
    Catálogo de botões (Key) e ações (Action) + profiles de mapeamento.

    Mutações são síncronas e idempotentes por id (último a registrar ganha).
    Persistência no redis é separada: `load()` / `save()`.
    """

    def __init__(self, state: Optional[RedisState] = None) -> None:
        self.state = state
        self._mapping = ButtonMapping()

    # =========================
    # KEYS
    # =========================

    def add_key(self, key: Key) -> None:
        if key.id in self._mapping.keys:
            log.debug("key_overwritten", extra={"id": key.id, "source": key.source})
        self._mapping.keys[key.id] = key

    def remove_key(self, key_id: str) -> None:
        if self._mapping.keys.pop(key_id, None) is None:
            log.debug("key_remove_missing", extra={"id": key_id})
            return
        for profile in self._mapping.profiles.values():
            profile.pop(key_id, None)

    def get_key(self, key_id: str) -> Optional[Key]:
        return self._mapping.keys.get(key_id)

    # =========================
    # ACTIONS
    # =========================

    def add_action(self, action: Action) -> None:
        if action.id in self._mapping.actions:
            log.debug("action_overwritten", extra={"id": action.id, "source": action.source})
        self._mapping.actions[action.id] = action

    def remove_action(self, action_id: str) -> None:
        if self._mapping.actions.pop(action_id, None) is None:
            log.debug("action_remove_missing", extra={"id": action_id})

    def update_action_icon(self, action_id: str, icon: Optional[str]) -> None:
        action = self._mapping.actions.get(action_id)
        if action is None:
            log.warning("action_icon_missing", extra={"id": action_id})
            return
        self._mapping.actions[action_id] = action.model_copy(update={"icon": icon})

    def get_action(self, action_id: str) -> Optional[Action]:
        return self._mapping.actions.get(action_id)

    def remove_source(self, source: str) -> None:
        keys = [k for k, v in self._mapping.keys.items() if v.source == source]
        actions = [a for a, v in self._mapping.actions.items() if v.source == source]
        for key_id in keys:
            self.remove_key(key_id)
        for action_id in actions:
            self.remove_action(action_id)
        log.info("keymap_source_removed", extra={"source": source, "keys": len(keys), "actions": len(actions)})

    # =========================
    # PROFILES
    # =========================

    def add_profile(self, name: str, base: Optional[str] = None) -> None:
        if base is not None and base not in self._mapping.profiles:
            raise NotFound(f"Profile {base} not found")
        source = self._mapping.profiles.get(base or "", {})
        self._mapping.profiles[name] = {k: dict(v) for k, v in source.items()}

    def delete_profile(self, name: str) -> None:
        if name == DEFAULT_PROFILE:
            raise Malformed("The default profile cannot be deleted")
        self._mapping.profiles.pop(name, None)
        if self._mapping.selected_profile == name:
            self._mapping.selected_profile = DEFAULT_PROFILE

    def set_mapping(self, profile: str, key_id: str, mode: str, action_id: str) -> None:
        if profile not in self._mapping.profiles:
            raise NotFound(f"Profile {profile} not found")
        if key_id not in self._mapping.keys:
            raise NotFound(f"Key {key_id} not found")
        if action_id not in self._mapping.actions:
            raise NotFound(f"Action {action_id} not found")
        self._mapping.profiles[profile].setdefault(key_id, {})[mode] = action_id

    # =========================
    # SNAPSHOT
    # =========================

    def get_mapping(self) -> dict:
        return self._mapping.model_dump()

    async def load(self) -> None:
        if self.state is None:
            return
        raw = await self.state.get_json(MAPPINGS_KEY)
        if raw is None:
            return
        try:
            self._mapping = ButtonMapping.model_validate(raw)
        except ValidationError:
            log.exception("keymap_load_invalid")
            return
        log.info(
            "keymap_loaded",
            extra={"keys": len(self._mapping.keys), "actions": len(self._mapping.actions)},
        )

    async def save(self) -> None:
        if self.state is None:
            return
        await self.state.set_json(MAPPINGS_KEY, self.get_mapping())
