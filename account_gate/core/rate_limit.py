from slowapi import Limiter
from slowapi.util import get_remote_address

# Shared by the public verification endpoint and the Telegram webhook
limiter = Limiter(key_func=get_remote_address)
