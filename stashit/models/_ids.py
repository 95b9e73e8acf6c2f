import uuid


def generate_id() -> str:
    """문자열 기본 키 생성 (uuid4 hex)"""
    return uuid.uuid4().hex
