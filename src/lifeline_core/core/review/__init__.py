"""Comprehensive case review"""

from lifeline_core.core.review.case_reviewer import CaseReviewer

__all__ = ["CaseReviewer"]
