"""AI Guidebook - Services"""
