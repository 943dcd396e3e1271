"""
ExpenseAI - Source Package

A personal expense tracker backend with AI categorization, AI insights
and real-time updates.

DESIGN PRINCIPLES:
1. Serve immediately, persist when possible (memory first, MongoDB later)
2. AI suggests, never blocks (every AI call has a fallback)
3. Users only ever see their own data
4. Storage layer is swappable at runtime
"""

__version__ = "1.0.0"
__author__ = "ExpenseAI Team"
