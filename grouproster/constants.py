# Group roster constants (sizes, limits and event envelope keys)

PUBLIC_KEY_SIZE = 32
CHAT_ID_SIZE = 32
PUBLIC_KEY_HEX_LEN = PUBLIC_KEY_SIZE * 2

MAX_NAME_BYTES = 128
MAX_PART_BYTES = 128
MAX_TOPIC_BYTES = 512
MAX_GROUP_NAME_BYTES = 48

DEFAULT_MAX_SESSIONS = 64
DEFAULT_MAX_IGNORED_KEYS = 65535

# Join notices are suppressed for this long after connecting to a group.
JOIN_GRACE_PERIOD_S = 60.0

EVENT_VERSION = 1

# Envelope keys
K_V = 0
K_T = 1
K_TS = 2
K_GROUP = 3
K_BODY = 4

# Event types: membership
T_PEER_JOIN = 10
T_PEER_EXIT = 11
T_NICK_CHANGE = 12
T_SELF_NICK_CHANGE = 13
T_STATUS_CHANGE = 14
T_MODERATION = 15
T_SELF_JOIN = 16
T_JOIN_REJECTED = 17

# Event types: messages
T_MESSAGE = 20
T_PRIVATE_MESSAGE = 21

# Event types: group state
T_TOPIC_CHANGE = 30
T_PEER_LIMIT = 31
T_PRIVACY_STATE = 32
T_VOICE_STATE = 33
T_TOPIC_LOCK = 34
T_PASSWORD = 35

# Body keys. Per event type only a subset is used.
B_PEER_ID = 0
B_NAME = 1
B_PUBLIC_KEY = 2
B_STATUS = 3
B_ROLE = 4
B_EXIT_TYPE = 5
B_PART_MESSAGE = 6
B_OLD_NAME = 7
B_SOURCE_PEER_ID = 8
B_TARGET_PEER_ID = 9
B_MOD_EVENT = 10
B_TEXT = 11
B_MESSAGE_TYPE = 12
B_VALUE = 13
B_REASON = 14
