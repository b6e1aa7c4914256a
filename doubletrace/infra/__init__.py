"""Collaborators that touch the outside world: method redefinition."""
