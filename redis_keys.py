REDIS_CHAT_KEY = "room:chat:{slug}" # room code - list of chat-message JSON blobs
REDIS_AI_KEY = "room:ai:{slug}" # room code - list of AI chat turns

# **Chat log lists**
# - RPUSH one JSON entry per message, LTRIM to the newest CHAT_HISTORY_LIMIT entries.
# - EXPIRE refreshed on every append, so idle rooms age out of Redis on their own.
# - Keys use the canonical (uppercase) room code, same as the in-memory Room Store.
