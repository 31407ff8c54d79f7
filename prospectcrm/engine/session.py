"""
User view context: who is signed in, their role, and whose data the views
show. Built at sign-in and passed explicitly to views and editors.

Admins may switch the view to any active salesperson or to the global view
('tous'); a salesperson only ever sees their own data. The selection is a
display filter, not an access control.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from prospectcrm.db.store import table
from prospectcrm.models import Profile, UserOption

logger = logging.getLogger(__name__)

GLOBAL_VIEW = 'tous'
GLOBAL_VIEW_LABEL = 'Tous les commerciaux'
DEFAULT_LABEL = 'Utilisateur'


@dataclass
class UserViewContext:
    current_user_id: str
    role: str = 'commercial'
    email: Optional[str] = None
    profile: Optional[Profile] = None
    users: List[UserOption] = field(default_factory=list)
    selected_user_id: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == 'admin'

    @property
    def is_global_view(self) -> bool:
        return self.selected_user_id in (None, GLOBAL_VIEW)

    @property
    def selected_user_label(self) -> str:
        if self.selected_user_id == GLOBAL_VIEW:
            return GLOBAL_VIEW_LABEL
        for option in self.users:
            if option.id == self.selected_user_id:
                return option.label
        return DEFAULT_LABEL

    @property
    def filter_user_id(self) -> Optional[str]:
        """The user id to filter on, or None for the global view."""
        return None if self.is_global_view else self.selected_user_id


def load_user_view(user_id: str, email: Optional[str] = None) -> UserViewContext:
    """Load the signed-in user's profile and the view options their role allows."""
    row = table('profiles').select_one({'id': user_id})
    profile = Profile(**row) if row else None
    role = profile.role if profile and profile.role else 'commercial'

    ctx = UserViewContext(current_user_id=user_id, role=role, email=email, profile=profile)

    if role == 'admin':
        rows = table('profiles').select({'actif': True}, columns=['id', 'prenom', 'nom'], order_by='prenom')
        ctx.users = [UserOption(id=r['id'], label=Profile(**r).label) for r in rows]
        current = next((o for o in ctx.users if o.id == user_id), ctx.users[0] if ctx.users else None)
        ctx.selected_user_id = current.id if current else None
        ctx.users.append(UserOption(id=GLOBAL_VIEW, label=GLOBAL_VIEW_LABEL))
    else:
        label = profile.label if profile else DEFAULT_LABEL
        ctx.users = [UserOption(id=user_id, label=label)]
        ctx.selected_user_id = user_id

    logger.debug(f"load_user_view: user={user_id} role={role} options={len(ctx.users)}")
    return ctx


def select_user(ctx: UserViewContext, user_id: str) -> UserViewContext:
    """Switch the view to another salesperson or to 'tous'. Admins only."""
    if not ctx.is_admin:
        raise ValueError("Only an admin can change the selected user")
    if user_id not in {o.id for o in ctx.users}:
        raise ValueError(f"Unknown user: {user_id}")
    ctx.selected_user_id = user_id
    logger.info(f"View switched to {ctx.selected_user_label}")
    return ctx
