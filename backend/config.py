import os

CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:5500,http://127.0.0.1:5500").split(",")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8000"))

# Outbound frames buffered per connection before the slow-consumer policy kicks in
WS_OUTBOUND_QUEUE_SIZE = int(os.getenv("WS_OUTBOUND_QUEUE_SIZE", "256"))
# "drop_oldest" or "disconnect"
WS_SLOW_CONSUMER_POLICY = os.getenv("WS_SLOW_CONSUMER_POLICY", "drop_oldest").lower()
# When false a second join keeps the connection in its previous project channel
WS_LEAVE_ON_REJOIN = os.getenv("WS_LEAVE_ON_REJOIN", "false").lower() == "true"
