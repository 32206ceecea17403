"""Follow graph domain: follows, follow requests and relationship reads."""
