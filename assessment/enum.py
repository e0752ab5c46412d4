"""
assessment/enum.py — Phases of a skill assessment.
"""
from enum import Enum


class Phase(str, Enum):
    LOADING    = "loading"
    INTRO      = "intro"      # also where errors are shown
    QUIZ       = "quiz"
    SUBMITTING = "submitting"
    RESULTS    = "results"
