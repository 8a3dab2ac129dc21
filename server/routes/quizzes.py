"""
Quiz API routes
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Response, UploadFile
from fastapi.responses import JSONResponse

from config import config, get_logger
from database.models import QuizDetail, QuizSummary
from exceptions import RequestError, ValidationError
from pipeline.protocols import NotificationEvent, Notifier, QuizLibrary
from server.dependencies import get_notifier, get_quiz_library, get_quiz_service, require_user_id, valid_quiz_id
from server.services.quiz_generation import UPLOAD_STAGE, QuizGenerationService

logger = get_logger(__name__).bind(component="api")


router = APIRouter(prefix="/api")


def oversized_upload(upload: UploadFile) -> JSONResponse:
    error = ValidationError(
        f"file {upload.filename} exceeds {config.MAX_UPLOAD_BYTES} bytes",
        field="files"
    )
    return JSONResponse(status_code=400, content=RequestError(UPLOAD_STAGE, error, 400).to_body())


@router.post("/quizzes/generate")
async def generate_quiz(
    files: Optional[List[UploadFile]] = File(None),
    video_urls: Optional[List[str]] = Form(None),
    user_id: str = Depends(require_user_id),
    service: QuizGenerationService = Depends(get_quiz_service),
):
    """Generate a quiz from uploaded documents and/or video URLs

    Multipart form: any number of `files` and `video_urls` fields.
    """
    uploads = []
    for upload in files or []:
        # Size is known for spooled multipart uploads; skip reading oversized ones
        if upload.size is not None and upload.size > config.MAX_UPLOAD_BYTES:
            return oversized_upload(upload)
        data = await upload.read()
        if len(data) > config.MAX_UPLOAD_BYTES:
            return oversized_upload(upload)
        uploads.append((upload.filename or "document", data))

    logger.info(
        "quiz generation requested",
        user_id=user_id,
        files=len(uploads),
        video_urls=len(video_urls or [])
    )

    try:
        persisted = await service.generate(user_id, uploads, video_urls or [])
    except RequestError as e:
        return JSONResponse(status_code=e.status_code, content=e.to_body())

    return {
        "message": "Quiz generated successfully!",
        "quizId": persisted.quiz_id,
    }


async def get_visible_quiz(
    library: QuizLibrary,
    quiz_id: str,
    user_id: str,
    include_questions: bool = True
) -> QuizDetail:
    """Stored quiz the user may see; private quizzes are only visible to their creator

    Raises:
        HTTPException 404 if the quiz does not exist or is hidden from the user
    """
    quiz = await library.get_quiz(quiz_id, include_questions=include_questions)
    if not quiz or (quiz.visibility == "private" and quiz.creator_id != user_id):
        raise HTTPException(status_code=404, detail="Quiz not found")
    return quiz


@router.get("/quizzes")
async def list_user_quizzes(
    user_id: str = Depends(require_user_id),
    library: QuizLibrary = Depends(get_quiz_library),
) -> List[QuizSummary]:
    """Quizzes created by the current user, newest first"""
    try:
        return await library.list_quizzes_by_creator(user_id)
    except Exception:
        logger.exception("error listing quizzes", user_id=user_id)
        raise HTTPException(status_code=500, detail="Failed to list quizzes")


@router.get("/quizzes/{quiz_id}")
async def get_quiz(
    user_id: str = Depends(require_user_id),
    quiz_id: str = Depends(valid_quiz_id),
    library: QuizLibrary = Depends(get_quiz_library),
) -> QuizDetail:
    """A stored quiz with its questions and answer options"""
    try:
        return await get_visible_quiz(library, quiz_id, user_id)
    except HTTPException:
        raise
    except Exception:
        logger.exception("error fetching quiz", quiz_id=quiz_id)
        raise HTTPException(status_code=500, detail="Failed to get quiz")


@router.delete("/quizzes/{quiz_id}", status_code=204)
async def delete_quiz(
    user_id: str = Depends(require_user_id),
    quiz_id: str = Depends(valid_quiz_id),
    library: QuizLibrary = Depends(get_quiz_library),
    notifier: Notifier = Depends(get_notifier),
):
    """Delete a quiz owned by the current user"""
    try:
        quiz = await get_visible_quiz(library, quiz_id, user_id, include_questions=False)
        if quiz.creator_id != user_id:
            raise HTTPException(status_code=403, detail="You do not have permission to delete this quiz")
        if not await library.delete_quiz(quiz_id):
            raise HTTPException(status_code=404, detail="Quiz not found")
    except HTTPException:
        raise
    except Exception:
        logger.exception("error deleting quiz", quiz_id=quiz_id, user_id=user_id)
        raise HTTPException(status_code=500, detail="Failed to delete quiz")

    logger.info("quiz deleted", quiz_id=quiz_id, user_id=user_id)
    notifier.notify(NotificationEvent(
        title="Quiz Deleted",
        description=quiz.title,
        level="info",
        fields={"Quiz ID": quiz_id, "Deleted By": user_id},
    ))
    return Response(status_code=204)
