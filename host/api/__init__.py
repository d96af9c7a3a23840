"""Host API 패키지"""
