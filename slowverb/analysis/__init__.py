"""
Analysis of loaded and rendered audio: waveform thumbnail data and level stats.
"""
from slowverb.analysis.levels import analyze_levels
from slowverb.analysis.waveform import waveform_summary, WAVEFORM_BUCKETS

__all__ = ["analyze_levels", "waveform_summary", "WAVEFORM_BUCKETS"]
