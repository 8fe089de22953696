def calculate_proximity(bid_price: float, seller_ideal_price: float) -> int:
    """How close a bid is to the seller's asking price, 0-100.

    Banded rather than linear near the asking price; below 70% of asking the
    score is the rounded ratio, floored at 10. No reference price scores 50.
    """
    if not seller_ideal_price:
        return 50

    ratio = bid_price / seller_ideal_price

    if ratio >= 1.0:
        return 100
    if ratio >= 0.90:
        return 90
    if ratio >= 0.80:
        return 75
    if ratio >= 0.70:
        return 60
    # halves round up
    return max(10, int(ratio * 100 + 0.5))


def get_proximity_label(score: int) -> str:
    if score >= 90:
        return "Strong offer"
    if score >= 75:
        return "Competitive"
    if score >= 60:
        return "Below market"
    return "Significantly below asking"
