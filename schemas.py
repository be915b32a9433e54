from __future__ import annotations
from typing import Optional, List

from pydantic import BaseModel, Field

# --- Auth ---

class AuthRegister(BaseModel):
    email: str = Field(min_length=3, max_length=200)
    name: str = Field(min_length=2, max_length=50)
    password: str = Field(min_length=6, max_length=200)

class AuthLogin(BaseModel):
    email: str = Field(min_length=3, max_length=200)
    password: str = Field(min_length=1, max_length=200)

class UserOut(BaseModel):
    id: str
    email: str
    name: str
    createdAt: int

class UserBrief(BaseModel):
    id: str; name: str; email: str

class AuthOut(BaseModel):
    token: str
    user: UserOut

# --- Lists ---

class ListCreate(BaseModel):
    title: str = Field(min_length=1, max_length=100)

class ListUpdate(BaseModel):
    title: str = Field(min_length=1, max_length=100)

class ShareCreate(BaseModel):
    email: str = Field(min_length=3, max_length=200)

class ShareOut(BaseModel):
    id: str; listId: str; userId: str; createdAt: int
    user: UserBrief

class ListOut(BaseModel):
    id: str; title: str; ownerId: str
    createdAt: int; updatedAt: int
    owner: UserBrief
    shares: Optional[List[ShareOut]] = None
    taskCount: int = 0

class ListsOut(BaseModel):
    ownedLists: List[ListOut]
    sharedLists: List[ListOut]

# --- Tasks ---

class TaskCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)

class TaskUpdate(BaseModel):
    title: str = Field(min_length=1, max_length=200)

class ReorderPayload(BaseModel):
    taskIds: List[str]

class TaskOut(BaseModel):
    id: str; title: str; completed: bool
    listId: str; orderIndex: int
    createdAt: int; updatedAt: int
    commentCount: int = 0

# --- Comments ---

class CommentCreate(BaseModel):
    content: str = Field(min_length=1, max_length=500)

class CommentOut(BaseModel):
    id: str; content: str; taskId: str; userId: str; createdAt: int
    user: UserBrief

def to_user_out(r) -> UserOut:
    return UserOut(id=r["id"], email=r["email"], name=r["name"], createdAt=int(r["created_at"]))

def to_user_brief(r) -> UserBrief:
    return UserBrief(id=r["id"], name=r["name"], email=r["email"])

def to_share_out(r, user) -> ShareOut:
    return ShareOut(id=r["id"], listId=r["list_id"], userId=r["user_id"], createdAt=int(r["created_at"]), user=to_user_brief(user))

def to_list_out(r, owner, task_count: int = 0, shares: Optional[List[ShareOut]] = None) -> ListOut:
    return ListOut(
        id=r["id"], title=r["title"], ownerId=r["owner_id"],
        createdAt=int(r["created_at"]), updatedAt=int(r["updated_at"]),
        owner=to_user_brief(owner), shares=shares, taskCount=int(task_count or 0),
    )

def to_task_out(r, comment_count: int = 0) -> TaskOut:
    return TaskOut(
        id=r["id"], title=r["title"], completed=bool(r["completed"]),
        listId=r["list_id"], orderIndex=int(r["order_index"]),
        createdAt=int(r["created_at"]), updatedAt=int(r["updated_at"]),
        commentCount=int(comment_count or 0),
    )

def to_comment_out(r, user) -> CommentOut:
    return CommentOut(
        id=r["id"], content=r["content"], taskId=r["task_id"], userId=r["user_id"],
        createdAt=int(r["created_at"]), user=to_user_brief(user),
    )
