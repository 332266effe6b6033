from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from services.deps import get_store

router = APIRouter(prefix="/api/v1/masters", tags=["Master Records"])

# =======================
# 1. PYDANTIC SCHEMAS
# =======================
class ClassCreate(BaseModel):
    class_name: str

# =======================
# 2. CLASS APIs
# =======================
@router.get("/classes")
async def list_classes(store=Depends(get_store)):
    return await store.list_class_names()

@router.post("/classes")
async def create_class(item: ClassCreate, store=Depends(get_store)):
    class_name = item.class_name.strip()
    if not class_name:
        raise HTTPException(status_code=400, detail="Class name is required")
    existing = {c.lower() for c in await store.list_class_names()}
    if class_name.lower() in existing or not await store.add_class(class_name):
        raise HTTPException(status_code=400, detail="Class already exists")
    return {"message": "Class Created", "class_name": class_name}
