"""Turn tracking and action validation.

Every mutating action (move, quiz answer, surrender) runs its validator pipeline
against the loaded game before anything is changed.
"""
