# deskrelay/state/redis_keys.py

"""
Contrato único de chaves Redis do relay.

⚠️ NUNCA usar strings hardcoded fora deste arquivo.
"""

# =========================
# APPS
# =========================

# Dados persistidos por app (equivalente ao antigo data.json)
# type: hash { <app_name>: JSON { ...dados do app, settings?: {...} } }
APP_DATA_KEY = "apps:data"

# Config global consultada via `get config`
# type: hash { <config_key>: JSON any }
CONFIG_KEY = "config"

# =========================
# SERVER
# =========================

# Settings do servidor
# {
#   refreshInterval: int
#   playbackLocation: str | null
#   globalADB: bool
#   callbackPort: int
# }
SETTINGS_KEY = "server:settings"

# =========================
# BUTTONS / ACTIONS
# =========================

# Snapshot completo do ButtonMapping
MAPPINGS_KEY = "keymap:mappings"

# =========================
# EVENTS / UI
# =========================

# Canal Pub/Sub único para a UI
EVENTS_CHANNEL = "events:pubsub"
