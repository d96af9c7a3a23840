"""HTTP 호스트 바인딩 패키지"""
