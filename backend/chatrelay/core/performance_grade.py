"""Performance Grade — pure scoring of a metrics snapshot for operators.

Invariants:
    - Grade is one of A, B, C, D, F; starts from 100 and loses points for
      latency, error rate and low cache hit rate
    - Status: healthy below 5% errors, warning below 15%, critical otherwise
    - recommendations() never returns an empty list
"""

from typing import Any


def grade(metrics: dict[str, Any]) -> str:
    latency = metrics["average_latency_ms"]
    error_rate = metrics["error_rate"]
    hit_rate = metrics["cache_hit_rate"]

    score = 100
    if latency > 5000:
        score -= 30
    elif latency > 3000:
        score -= 20
    elif latency > 2000:
        score -= 10

    if error_rate > 0.1:
        score -= 40
    elif error_rate > 0.05:
        score -= 20
    elif error_rate > 0.01:
        score -= 10

    if hit_rate < 0.1:
        score -= 15
    elif hit_rate < 0.2:
        score -= 10
    elif hit_rate > 0.5:
        score += 5

    for threshold, letter in ((90, "A"), (80, "B"), (70, "C"), (60, "D")):
        if score >= threshold:
            return letter
    return "F"


def status(metrics: dict[str, Any]) -> str:
    error_rate = metrics["error_rate"]
    if error_rate < 0.05:
        return "healthy"
    if error_rate < 0.15:
        return "warning"
    return "critical"


def recommendations(metrics: dict[str, Any]) -> list[str]:
    recs = []
    requests = metrics["request_count"]
    if metrics["average_latency_ms"] > 3000:
        recs.append(
            "High latency detected. Consider a faster model or a longer cache TTL.",
        )
    if metrics["error_rate"] > 0.05:
        recs.append(
            "High error rate detected. Check upstream API status and network connectivity.",
        )
    if metrics["cache_hit_rate"] < 0.2 and requests > 10:
        recs.append(
            "Low cache hit rate. Consider a longer cache TTL.",
        )
    if metrics["requests_per_minute"] > 100:
        recs.append(
            "High request volume. Consider rate limiting.",
        )
    if requests and metrics["tokens_generated"] / requests > 2000:
        recs.append(
            "High average tokens per request. Consider tighter max_tokens limits.",
        )
    if not recs:
        recs.append("Performance looks good. No immediate optimizations needed.")
    return recs


def insights(metrics: dict[str, Any]) -> dict[str, Any]:
    return {
        "status": status(metrics),
        "performance_grade": grade(metrics),
        "recommendations": recommendations(metrics),
    }
