"""Form-engine constants shared across the SDK.

Several constants can be overridden via environment variables so that
deployments can point at a different registry study or tune retry
behaviour without code changes.
"""

import os

# External identifier of the registry study whose consent gates every
# other module.  Overridable via REGISTRY_EXTERNAL_ID.
REGISTRY_EXTERNAL_ID = os.getenv("REGISTRY_EXTERNAL_ID", "connect")

# How many times a revision is retried after losing the version race.
VERSION_CONFLICT_RETRIES = int(os.getenv("VERSION_CONFLICT_RETRIES", "3"))

# Component type whose answers are booleans; every other type stores strings.
CHECKBOX_TYPE = "checkbox"

# Response keys copied onto the participant record once a form is complete.
PROFILE_FIELD_KEYS: dict[str, str] = {
    "first-name": "first_name",
    "last-name": "last_name",
    "birthdate": "birthdate",
}
