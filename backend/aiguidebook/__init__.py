"""AI Guidebook - AI usage declaration backend."""
