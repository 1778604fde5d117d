# Centralized collection and field names to prevent drift.
# Field names are camelCase because the mobile client reads these documents directly.

COL_USERS = "users"
COL_SUBSCRIPTIONS = "subscriptions"  # users/{uid}/subscriptions/{subscription_id}
COL_CHATS = "chats"
COL_MESSAGES = "messages"  # chats/{chat_id}/messages/{message_id}
COL_TIPS = "tips"  # tips/{day}

COL_SYSTEM = "system"
DOC_TIP_ROTATION = "tip_rotation"
DOC_HEALTHZ = "healthz"

# users/{uid}
FIELD_SUBSCRIPTION = "subscription"
FIELD_FCM_TOKENS = "fcmTokens"

# Subscription lifecycle statuses
STATUS_CREATED = "created"
STATUS_ACTIVE = "active"
STATUS_CANCEL_SCHEDULED = "cancel_scheduled"
STATUS_INACTIVE = "inactive"

PLAN_KINDS = ("monthly", "yearly")
