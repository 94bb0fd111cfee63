"""Agents module - the career counselor reply generator."""

from .career_agent import CareerCounselorAgent
from .prompts import SYSTEM_PROMPT, FALLBACK_REPLY

__all__ = ['CareerCounselorAgent', 'SYSTEM_PROMPT', 'FALLBACK_REPLY']
