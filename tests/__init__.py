"""
Test package for badge_redeem
"""
