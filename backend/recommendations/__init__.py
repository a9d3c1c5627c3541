"""
Recommendations Module
======================

Read side of the venue finder.

1. ScoringService - compatibility score of a venue for a user's work preferences
2. VenueQueryService - validated radius search and ranked recommendations
3. REST endpoint for recommendations

The module owns no tables; it reads venues, amenities and user profiles.
"""
