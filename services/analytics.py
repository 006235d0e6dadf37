"""Feedback statistics and issue analytics for the admin dashboard.

Both functions take the full list of feedback rows and make one pass over it.
Nothing is cached; callers recompute on every request.
"""

from collections import Counter

from services.sentiment import FALLBACK_LABEL, NEGATIVE, SENTIMENT_LABELS

TOP_N = 10

# Facility and teaching-quality terms. Matched as substrings of the lower-cased
# text, so "ac" also hits "place".
ISSUE_KEYWORDS = (
    'pc', 'computer', 'laptop', 'system', 'lab', 'projector',
    'ac', 'fan', 'light', 'bench', 'chair', 'board', 'marker',
    'wifi', 'internet', 'network', 'not working', 'broken', 'damaged',
    'grading', 'attitude',
)


def _label(entry):
    sentiment = entry.get('sentiment')
    return sentiment if sentiment in SENTIMENT_LABELS else FALLBACK_LABEL


def sentiment_stats(entries):
    counts = Counter(_label(entry) for entry in entries)
    stats = {'total': len(entries)}
    for label in SENTIMENT_LABELS:
        stats[label] = counts[label]
    return stats


def _ranked(counter, key_name):
    return [{key_name: key, 'count': count} for key, count in counter.most_common(TOP_N)]


def analyze_feedback(entries):
    """Return ``topKeywords``, ``topFacultyIssues``, ``topSubjectIssues`` and ``facultyStats``.

    Keyword and issue counts come from negative entries only; the per-faculty
    sentiment breakdown covers every entry. Ranked lists are sorted by count
    with ties kept in first-seen order and cut to ``TOP_N``.
    """
    keywords = Counter()
    faculty_issues = Counter()
    subject_issues = Counter()
    faculty_stats = {}

    for entry in entries:
        faculty = entry.get('faculty_name') or ''
        label = _label(entry)

        stats = faculty_stats.setdefault(faculty, dict.fromkeys(SENTIMENT_LABELS + ('total',), 0))
        stats[label] += 1
        stats['total'] += 1

        if label != NEGATIVE:
            continue

        text = (entry.get('feedback_text') or '').lower()
        for keyword in ISSUE_KEYWORDS:
            if keyword in text:
                keywords[keyword] += 1
                faculty_issues[f'{keyword} - {faculty}'] += 1

        subject_issues[f"{entry.get('subject') or ''} - {faculty}"] += 1

    return {
        'topKeywords': _ranked(keywords, 'keyword'),
        'topFacultyIssues': _ranked(faculty_issues, 'issue'),
        'topSubjectIssues': _ranked(subject_issues, 'subject'),
        'facultyStats': faculty_stats,
    }
