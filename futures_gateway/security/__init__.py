"""API 자격 증명 보호 유틸리티"""
