"""
Intelligence Layer Module

Provides rule-based intent classification, model-tier selection, and
per-customer conversation storage for the queue dispatcher.

Usage:
    from deskbot.core.intelligence.intent import classify_intent
    from deskbot.core.intelligence.model_selector import select_model

    intent = classify_intent("book AC cleaning tomorrow")
    print(intent)  # Intent.BOOKING
    print(select_model(intent))  # Tier.CAPABLE
"""
