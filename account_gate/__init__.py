"""Account verification API with a Telegram admin approval bridge."""
