"""
Test suite for the modubook social service.

Tests cover:
- Signup, email verification and login
- Posts, images and hashtags
- Likes and comments
- Book search proxy
- Database initialization, health checks and rate limiting
"""
