# listsync/constants.py
# Record types, field names and naming rules shared by every device

# Globally readable zone holding the code -> locator records
PUBLIC_ZONE: str = "_public"

# Zone names are derived from the code so host retries stay idempotent
ZONE_PREFIX: str = "lb-"
CHAT_SUBSCRIPTION_PREFIX: str = "lb-chat-"

# --- Record types ---
SHARE_CODE_TYPE: str = "ShareCode"
LIST_ROOT_TYPE: str = "ListRoot"
LIST_ITEM_TYPE: str = "ListItem"
CHAT_MESSAGE_TYPE: str = "ChatMessage"

# --- Fields ---
SHARE_LOCATOR_FIELD: str = "locator"

LIST_ROOT_RECORD_NAME: str = "list"
LIST_CODE_FIELD: str = "code"
LIST_CREATED_AT_FIELD: str = "createdAt"

ITEM_PAYLOAD_FIELD: str = "payload"
ITEM_UPDATED_AT_FIELD: str = "updatedAt"

CHAT_SENDER_FIELD: str = "sender"
CHAT_TEXT_FIELD: str = "text"
CHAT_TIMESTAMP_FIELD: str = "timestamp"

# --- Locators ---
LOCATOR_SCHEME: str = "listsync"
LOCATOR_PREFIX: str = f"{LOCATOR_SCHEME}://share/"
