"""Profile image uploads to Cloudflare R2"""

import logging
import uuid

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from sqlalchemy.orm import Session

from ..auth import get_current_user_with_role
from ..config import R2_ACCESS_KEY_ID, R2_ACCOUNT_ID, R2_BUCKET_NAME, R2_PUBLIC_URL, R2_SECRET_ACCESS_KEY
from ..database import get_db
from ..domain.students.repository import StudentRepository
from ..domain.students.service import StudentService, can_manage_student
from ..domain.teachers.service import TeacherService
from ..domain.users.service import UserService
from ..models import User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/upload", tags=["Upload"])

# Presigned URL expiration time (1 hour)
PRESIGNED_URL_EXPIRATION = 3600

ALLOWED_IMAGE_TYPES = ["image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"]
VALID_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp")
DANGEROUS_CHARS = ["..", "/", "\\", "<", ">", ":", '"', "|", "?", "*"]

MIN_FILE_SIZE = 1024  # 1KB
MAX_FILE_SIZE = 5 * 1024 * 1024  # 5MB


def get_r2_client():
    """Create and return an R2 client."""
    return boto3.client(
        "s3",
        endpoint_url=f"https://{R2_ACCOUNT_ID}.r2.cloudflarestorage.com",
        aws_access_key_id=R2_ACCESS_KEY_ID,
        aws_secret_access_key=R2_SECRET_ACCESS_KEY,
        config=Config(signature_version="s3v4"),
    )


def generate_presigned_url(key: str, expiration: int = PRESIGNED_URL_EXPIRATION) -> str:
    """Generate a presigned URL for accessing a private object in R2."""
    r2 = get_r2_client()
    try:
        url = r2.generate_presigned_url(
            "get_object",
            Params={"Bucket": R2_BUCKET_NAME, "Key": key, "ResponseContentDisposition": "inline"},
            ExpiresIn=expiration,
        )
        logger.info(f"✅ Generated presigned URL for key: {key}")
        return url
    except (BotoCoreError, ClientError) as e:
        logger.error(f"❌ Failed to generate presigned URL for key {key}: {e}")
        raise


def public_url_for(key: str) -> str:
    """Public bucket URL when one is configured, otherwise a presigned GET URL"""
    if R2_PUBLIC_URL:
        return f"{R2_PUBLIC_URL.rstrip('/')}/{key}"
    return generate_presigned_url(key)


def validate_image_file(file: UploadFile) -> None:
    if file.content_type not in ALLOWED_IMAGE_TYPES:
        raise HTTPException(
            status_code=400,
            detail="Invalid file type. Only JPEG, PNG, GIF, and WebP images are allowed.",
        )

    if file.filename:
        logger.info(f"🔍 Validating filename: '{file.filename}'")
        for char in DANGEROUS_CHARS:
            if char in file.filename:
                logger.warning(f"❌ Dangerous character '{char}' detected in filename: '{file.filename}'")
                raise HTTPException(
                    status_code=400, detail=f"Invalid filename - contains dangerous character '{char}'"
                )

        if not file.filename.lower().endswith(VALID_EXTENSIONS):
            logger.warning(f"❌ Invalid extension in filename: '{file.filename}'")
            raise HTTPException(status_code=400, detail="Invalid filename - must have a valid image extension")

        if len(file.filename) > 255:
            logger.warning(f"❌ Filename too long: '{file.filename}' ({len(file.filename)} chars)")
            raise HTTPException(status_code=400, detail="Filename too long - maximum 255 characters")


def check_target(target: str, user: User, db: Session) -> None:
    """Reject targets the caller may not write before anything is uploaded"""
    if target == "account":
        return
    if target == "teacher":
        if user.role != "TEACHER" or not user.teacher:
            raise HTTPException(status_code=403, detail="Access denied")
        return
    if target == "parent":
        if user.role != "PARENT":
            raise HTTPException(status_code=403, detail="Access denied")
        return
    if target.startswith("student/"):
        student = StudentRepository.get_student(db, target.split("/", 1)[1])
        if not student:
            raise HTTPException(status_code=404, detail="Student not found")
        if not can_manage_student(student, user):
            raise HTTPException(status_code=403, detail="Unauthorized: You cannot update this student")
        return
    raise HTTPException(status_code=400, detail="Invalid upload target")


def apply_image(target: str, url: str, user: User, db: Session) -> None:
    if target == "account":
        UserService(db).update_image(url, user)
    elif target == "teacher":
        TeacherService(db).update_image(url, user)
    elif target == "parent":
        StudentService(db).update_parent_image(url, user)
    else:
        StudentService(db).update_student_image(target.split("/", 1)[1], url, user)


@router.post("/image/{target:path}")
async def upload_image(
    target: str,
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_user_with_role),
    db: Session = Depends(get_db),
):
    """
    Upload a profile image and attach it.

    target is one of: account, teacher, parent, student/{studentId}
    """
    logger.info(f"📤 Uploading {target} image for user {current_user.id}")
    check_target(target, current_user, db)
    validate_image_file(file)

    contents = await file.read()
    if len(contents) < MIN_FILE_SIZE:
        raise HTTPException(status_code=400, detail="File is too small. Minimum size is 1KB.")
    if len(contents) > MAX_FILE_SIZE:
        raise HTTPException(
            status_code=400,
            detail=f"File size exceeds 5MB limit. Your file is {len(contents) / (1024 * 1024):.2f}MB.",
        )

    ext = file.filename.rsplit(".", 1)[-1].lower() if file.filename and "." in file.filename else "png"
    key = f"profile-images/{current_user.id}/{uuid.uuid4()}.{ext}"

    try:
        r2 = get_r2_client()
        r2.put_object(Bucket=R2_BUCKET_NAME, Key=key, Body=contents, ContentType=file.content_type)
        url = public_url_for(key)
    except (BotoCoreError, ClientError) as e:
        logger.error(f"❌ Upload failed: {str(e)}")
        raise HTTPException(status_code=500, detail="Upload failed") from e

    apply_image(target, url, current_user, db)
    logger.info(f"✅ Uploaded {key}")
    return {"key": key, "url": url}
