"""Edit-distance helpers used to flag near-duplicate names during import."""

from __future__ import annotations


def distance(a: str, b: str) -> int:
    """Levenshtein distance: insertions, deletions and substitutions all cost 1."""
    m, n = len(a), len(b)
    dp = [[0] * (n + 1) for _ in range(m + 1)]
    for i in range(m + 1):
        dp[i][0] = i
    for j in range(n + 1):
        dp[0][j] = j

    for i in range(1, m + 1):
        for j in range(1, n + 1):
            if a[i - 1] == b[j - 1]:
                dp[i][j] = dp[i - 1][j - 1]
            else:
                dp[i][j] = 1 + min(dp[i - 1][j], dp[i][j - 1], dp[i - 1][j - 1])
    return dp[m][n]


def is_fuzzy_match(a: str, b: str, threshold: int = 3) -> bool:
    """Return True when two names are close enough to be the same person."""
    return distance(a.strip().lower(), b.strip().lower()) <= threshold
