"""User-user collaborative filtering over like/dislike judgments.

Core idea:
- Mirror each rater's liked/disliked items into sets in a ranked key-value store
- Score rater pairs by agreements minus disagreements over the rater's judgment count
- Predict unjudged items from similarity-weighted likes and dislikes of other raters
"""
