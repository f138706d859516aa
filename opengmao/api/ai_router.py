"""
FastAPI Router — Uploads • Transcription • Extraction • Ingestion • Chat
========================================================================

Purpose
-------
Defines the HTTP API of the AI features:
- Upload of manuals and nameplate photos to S3 (presigned URL returned)
- Voice transcription (Whisper in ar/fr/en, Darija clean-up)
- Multi-pass extraction of a manual into asset records
- Document ingestion (chunks + embeddings) streamed as SSE progress events
- Chat over an asset's documentation streamed as SSE frames
- Conversation memory, dependency suggestions, aliases, documents and their versions, triage

Key Notes
---------
- Auth cookie: `token` (JWT, subject = user id).
- Error bodies are `{"error": ...}` (plus `success: false` on the upload and
  extraction routes) because the web client reads that key.
- Streaming responses write `data: {json}\\n\\n` frames.
"""

from fastapi import APIRouter, Cookie, UploadFile, File, Form
from fastapi.responses import StreamingResponse
from opengmao.api.models import (AiExtractRequest, SuggestDependenciesRequest, ChatRequest, TriageRequest,
                                 AliasCreate, DocumentTypesUpdate, SupersedeRequest)
from opengmao.api.utils import verify_token, error_response
from opengmao.api.rate_limiter import upload_limiter, extraction_limiter
from opengmao.api.prompt_utilities import (sanitize_filename, fetch_file, process_file, estimate_tokens,
                                           get_chat_model, build_chat_messages)
from opengmao.api.aws_bucket_funcs.funcs import get_client, upload_bytes, download
from opengmao.database.core.funcs import (
    get_user, get_asset, list_assets, list_other_assets, get_asset_document_text,
    add_alias, list_aliases, delete_alias,
    list_documents, get_document, update_document_types, delete_document,
)
from opengmao.ai.transcription import transcribe_multilingual, MAX_AUDIO_BYTES
from opengmao.ai.extraction_pipeline import extract_equipment_data_multi_pass, convert_to_legacy_format, estimate_cost_mad
from opengmao.ai.dependency_suggester import suggest_dependencies
from opengmao.ai.ingestion import ingest_document
from opengmao.ai.query_analyzer import quick_analyze, analyze_query, analysis_from_quick, needs_full_analysis
from opengmao.ai.triage import triage
from opengmao.rag.alias_resolution import validate_alias, preprocess_rag_query, build_equipment_context
from opengmao.rag.intent_detection import detect_query_intent, intent_to_document_types
from opengmao.rag.smart_search import (smart_search, build_context, search_summary, build_system_prompt,
                                       get_dependency_context, get_hierarchy_context, format_hierarchy_for_prompt,
                                       HIERARCHY_SCOPES)
from opengmao.rag import conversation_memory
from opengmao.dependencies.suggestions import (get_pending_suggestions, approve_suggestion, reject_suggestion,
                                               delete_suggestion)
from opengmao.documents.versions import (get_version_chain, supersede, archive_document, unarchive_document,
                                         suggest_next_version)
from opengmao.cache.ttl_cache import clear_cache
from datetime import datetime, timezone
from typing import Optional
import json
import logging
import time

logger = logging.getLogger("uvicorn")

router = APIRouter()
"""Creates the FastAPI router in which we define its routes"""

MAX_UPLOAD_BYTES = 50 * 1024 * 1024
ALLOWED_UPLOAD_TYPES = ("application/pdf", "image/jpeg", "image/png")
PRESIGNED_URL_SECONDS = 3600
CHAT_HISTORY_MESSAGES = 10
CHAT_MAX_TOKENS = 2000


def sse(payload: dict) -> str:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


def token_user(token: Optional[str]) -> Optional[str]:
    """User id of the `token` cookie, None when absent or invalid."""
    return verify_token(token) if token else None


def user_organization(user_id: str) -> Optional[str]:
    user = get_user(user_id=user_id)
    return user['organization_id'] if user else None


# --------------------------------------------------------------------------- #
# Upload
# --------------------------------------------------------------------------- #

@router.post('/api/assets/upload')
async def upload_file(file: UploadFile = File(None), token: str = Cookie(None)):
    """Store a manual or photo in S3 and return a presigned URL valid one hour.

    Checks, in order: auth (401), hourly quota of 10 uploads (429), file
    present (400), type PDF/JPEG/PNG (400), size at most 50MB (413).

    Response:
        200: {success, file_url, file_name, file_size_bytes, file_type, uploaded_at}
    """
    user_id = token_user(token)
    if not user_id:
        return error_response(401, 'Non autorisé', success=False)
    if upload_limiter.is_limited(user_id):
        return error_response(429, "Limite d'uploads atteinte (10 par heure)", success=False)
    if file is None or not file.filename:
        return error_response(400, 'Aucun fichier fourni', success=False)
    if file.content_type not in ALLOWED_UPLOAD_TYPES:
        return error_response(400, 'Type de fichier non autorisé. Acceptés: PDF, JPEG, PNG', success=False)

    try:
        data = await file.read()
        if len(data) > MAX_UPLOAD_BYTES:
            return error_response(
                413, f"Fichier trop volumineux (max: 50MB, reçu: {round(len(data) / 1024 / 1024)}MB)",
                success=False,
            )

        key = f"{user_id}/{int(time.time() * 1000)}_{sanitize_filename(file.filename)}"
        s3_client = get_client()
        try:
            upload_bytes(data, key, file.content_type, s3_client, file_name=file.filename)
        except Exception as e:
            logger.error(f"[Upload] Storage error: {e}")
            return error_response(500, "Échec de l'upload. Veuillez réessayer.", success=False)

        file_url = download(key, s3_client, expires=PRESIGNED_URL_SECONDS)
        upload_limiter.record(user_id)
        logger.info(f"📤 [Upload] {file.filename} stored as {key}")
        return {
            'success': True,
            'file_url': file_url,
            'file_name': file.filename,
            'file_size_bytes': len(data),
            'file_type': file.content_type,
            'uploaded_at': datetime.now(timezone.utc).isoformat(),
        }
    except Exception as e:
        logger.error(f"[Upload] Unexpected error: {e}")
        return error_response(500, "Erreur serveur lors de l'upload", success=False)


# --------------------------------------------------------------------------- #
# Transcription
# --------------------------------------------------------------------------- #

@router.post('/api/transcribe')
async def transcribe(audio: UploadFile = File(None), language: str = Form('auto')):
    """Transcribe a voice note; `language='auto'` tries Arabic, French and English."""
    if audio is None:
        return error_response(400, 'No audio file provided')
    data = await audio.read()
    if len(data) > MAX_AUDIO_BYTES:
        return error_response(400, 'File too large. Max size is 25MB')

    try:
        return await transcribe_multilingual(audio=data, filename=audio.filename or 'audio.webm',
                                             language_hint=language or 'auto')
    except Exception as e:
        status = getattr(e, 'status_code', None)
        if status == 401:
            return error_response(401, 'Invalid API key')
        if status == 429:
            return error_response(429, 'Rate limit exceeded')
        logger.error(f"[Transcription] Error: {e}")
        return error_response(500, 'Transcription failed', details=str(e))


# --------------------------------------------------------------------------- #
# Extraction & ingestion
# --------------------------------------------------------------------------- #

@router.post('/api/assets/ai-extract')
def ai_extract(data: AiExtractRequest, token: str = Cookie(None)):
    """Run the five-pass extraction on an uploaded file.

    Response:
        200: {success, data (legacy shape + multi-pass sections), cost, processing_time_ms,
              file_name, file_url, file_type}
    """
    if not data.file_url:
        return error_response(400, 'URL du fichier requise', success=False)
    user_id = token_user(token)
    if not user_id:
        return error_response(401, 'Non autorisé', success=False)
    if extraction_limiter.check(user_id):
        return error_response(429, "Limite d'extractions atteinte (10/heure)", success=False)

    try:
        text = process_file(fetch_file(data.file_url), data.file_type)
        logger.info(f"🧾 [AI Extract] {len(text)} chars, ~{estimate_tokens(text)} tokens")

        started = time.time()
        result = extract_equipment_data_multi_pass(text, max_tokens_per_pass=8000)
        processing_time = int((time.time() - started) * 1000)

        legacy = convert_to_legacy_format(result)
        metadata = result['extraction_metadata']
        return {
            'success': True,
            'data': {
                **legacy,
                'model_configurations': result.get('model_configurations'),
                'integrated_subsystems': result.get('integrated_subsystems'),
                'electrical_components': result.get('electrical_components'),
                'motor_protection_settings': result.get('motor_protection_settings'),
                'control_sequences': result.get('control_sequences'),
                'specification_tables': result.get('specification_tables'),
                'diagnostic_codes': result.get('diagnostic_codes'),
                'full_maintenance_schedule': result.get('maintenance_schedule'),
                'extraction_mode': 'multi_pass',
                'passes_count': 5,
                'completeness_score': result['validation']['completeness_score'],
                'confidence_score': result['validation']['confidence_score'],
                'validation': result['validation'],
            },
            'cost': {
                'tokens_used': metadata['total_tokens'],
                'cost_usd': metadata['cost_usd'],
                'cost_mad': estimate_cost_mad(metadata['cost_usd']),
            },
            'processing_time_ms': processing_time,
            'file_name': data.file_name,
            'file_url': data.file_url,
            'file_type': data.file_type,
        }
    except Exception as e:
        logger.error(f"[AI Extract] Error: {e}")
        return error_response(500, str(e) or "Erreur lors de l'extraction", success=False)


@router.post('/api/ingest')
async def ingest(file: UploadFile = File(None), assetId: Optional[str] = Form(None),
                 documentType: Optional[str] = Form(None), token: str = Cookie(None)):
    """Import a PDF manual; progress is streamed as SSE events `{stage, progress, message, ...}`."""
    user_id = token_user(token)
    data = await file.read() if file is not None else None

    def events():
        if not user_id:
            yield sse({'stage': 'error', 'progress': 0, 'message': 'Non autorisé'})
            return
        if not data:
            yield sse({'stage': 'error', 'progress': 0, 'message': 'Aucun fichier fourni'})
            return
        for event in ingest_document(data=data, filename=file.filename, user_id=user_id,
                                     organization_id=user_organization(user_id), asset_id=assetId or None,
                                     document_type=documentType or None):
            yield sse(event)

    return StreamingResponse(events(), media_type="text/event-stream",
                             headers={"Cache-Control": "no-cache", "Connection": "keep-alive"})


# --------------------------------------------------------------------------- #
# Chat
# --------------------------------------------------------------------------- #

def prepare_chat(message: str, asset: dict, organization_id: Optional[str]) -> dict:
    """
    Everything the chat model needs besides the history.

    Returns
    -------
    dict
        {'system_prompt', 'analysis', 'results'}.
    """
    asset_id = asset['id']
    preprocessed = preprocess_rag_query(query=message, organization_id=organization_id)
    query = preprocessed['modified_query']

    hierarchy = get_hierarchy_context(asset_id=asset_id)
    quick = quick_analyze(query)
    logger.info(f"⚡ Quick analysis: intent={quick['intent']} urgency={quick['urgency']}")
    if needs_full_analysis(message, quick):
        analysis = analyze_query(
            query, asset['name'], level=asset.get('level') or 'equipment', category=asset.get('category'),
            children=[c['name'] for c in hierarchy['children']],
            aliases=[a['alias'] for a in list_aliases(asset_id=asset_id)],
        )
    else:
        analysis = analysis_from_quick(query, asset.get('level'))

    document_types = intent_to_document_types(detect_query_intent(query))
    results = smart_search(asset_id=asset_id, query=query, analysis=analysis, max_results=15,
                           document_types=document_types)
    logger.info(f"📚 {len(results)} sources: {[r['source_type'] for r in results]}")

    hierarchy_text = ""
    if (asset.get('level') or '') not in HIERARCHY_SCOPES:
        hierarchy_text = format_hierarchy_for_prompt(hierarchy, asset['name'])

    system_prompt = (
        build_system_prompt(asset, analysis, build_context(results), hierarchy_text)
        + build_equipment_context(preprocessed['resolved_equipment'])
        + get_dependency_context(asset_id, analysis)
    )
    return {'system_prompt': system_prompt, 'analysis': analysis, 'results': results}


@router.post('/api/chat')
async def chat(data: ChatRequest, token: str = Cookie(None)):
    """Answer a question about an asset from its documentation (SSE).

    Frames:
        {content} while the answer streams, then
        {done: true, analysis: {intent, urgency, response_format}, search: {...}}.
    """
    user_id = token_user(token)
    if not user_id:
        return error_response(401, 'Unauthorized')
    if not data.message or not data.asset_id:
        return error_response(400, 'Message and asset_id required')
    asset = get_asset(asset_id=data.asset_id, with_extraction=False)
    if asset is None:
        return error_response(404, 'Asset not found')

    try:
        prepared = prepare_chat(data.message, asset, user_organization(user_id))
    except Exception as e:
        logger.error(f"[Chat] Error: {e}")
        return error_response(500, 'Internal server error', details=str(e))

    analysis = prepared['analysis']
    if data.use_memory:
        history = conversation_memory.get_context_messages(user_id=user_id, asset_id=data.asset_id)
        conversation_memory.add_message(user_id=user_id, asset_id=data.asset_id, role='user',
                                        content=data.message, intent=analysis.get('intent'))
    else:
        history = data.conversation_history[-CHAT_HISTORY_MESSAGES:]

    messages = build_chat_messages(prepared['system_prompt'], history, data.message)
    model = get_chat_model(temperature=0.3 if analysis.get('urgency') == 'emergency' else 0.7,
                           max_tokens=CHAT_MAX_TOKENS)

    async def generate():
        answer = ""
        async for chunk in model.astream(messages):
            content = chunk.content if hasattr(chunk, 'content') else str(chunk)
            if content:
                answer += content
                yield sse({'content': content})
        if data.use_memory and answer:
            conversation_memory.add_message(user_id=user_id, asset_id=data.asset_id, role='assistant',
                                            content=answer)
        yield sse({
            'done': True,
            'analysis': {
                'intent': analysis.get('intent'),
                'urgency': analysis.get('urgency'),
                'response_format': analysis.get('response_format'),
            },
            'search': search_summary(prepared['results']),
        })

    return StreamingResponse(generate(), media_type="text/event-stream",
                             headers={"Cache-Control": "no-cache", "Connection": "keep-alive"})


@router.get('/api/conversations/{asset_id}')
def conversation_get(asset_id: str, token: str = Cookie(None)):
    """Stored messages of the user's conversation about an asset, with its summary."""
    user_id = token_user(token)
    if not user_id:
        return error_response(401, 'Unauthorized')
    return {
        'messages': conversation_memory.get_messages(user_id=user_id, asset_id=asset_id),
        'summary': conversation_memory.get_summary(user_id=user_id, asset_id=asset_id),
    }


@router.delete('/api/conversations/{asset_id}')
def conversation_clear(asset_id: str, token: str = Cookie(None)):
    user_id = token_user(token)
    if not user_id:
        return error_response(401, 'Unauthorized')
    return {'success': conversation_memory.clear_conversation(user_id=user_id, asset_id=asset_id)}


# --------------------------------------------------------------------------- #
# Dependencies
# --------------------------------------------------------------------------- #

@router.post('/api/suggest-dependencies')
def suggest_asset_dependencies(data: SuggestDependenciesRequest, token: str = Cookie(None)):
    """Ask the model for upstream/downstream dependencies of an asset (not stored)."""
    user_id = token_user(token)
    if not user_id:
        return error_response(401, 'Unauthorized')
    if not data.asset_id:
        return error_response(400, 'asset_id required')
    try:
        asset = get_asset(asset_id=data.asset_id, with_extraction=False)
        if asset is None:
            return error_response(404, 'Asset not found')
        document_text = get_asset_document_text(asset_id=data.asset_id)
        others = list_other_assets(organization_id=user_organization(user_id), exclude_id=data.asset_id)
        return suggest_dependencies(asset['name'], document_text, others, asset.get('category') or 'equipment')
    except Exception as e:
        logger.error(f"[Suggest Dependencies] Error: {e}")
        return error_response(500, 'Failed to suggest dependencies', details=str(e))


@router.get('/api/dependencies/suggestions')
def suggestions_list(assetId: Optional[str] = None, token: str = Cookie(None)):
    """Pending suggestions of an asset, highest confidence first."""
    if not assetId:
        return error_response(400, 'assetId required')
    if not token_user(token):
        return error_response(401, 'Unauthorized')
    return {'suggestions': get_pending_suggestions(asset_id=assetId)}


@router.post('/api/dependencies/suggestions/{suggestion_id}')
def suggestion_approve(suggestion_id: str, token: str = Cookie(None)):
    user_id = token_user(token)
    if not user_id:
        return error_response(401, 'Unauthorized')
    res = approve_suggestion(suggestion_id=suggestion_id, reviewed_by=user_id)
    if not res['res']:
        return error_response(400, res['detail'])
    clear_cache()
    return {'success': True, 'message': 'Dependency created', 'dependency_id': res['dependency_id']}


@router.patch('/api/dependencies/suggestions/{suggestion_id}')
def suggestion_reject(suggestion_id: str, token: str = Cookie(None)):
    user_id = token_user(token)
    if not user_id:
        return error_response(401, 'Unauthorized')
    if not reject_suggestion(suggestion_id=suggestion_id, reviewed_by=user_id):
        return error_response(404, 'Suggestion not found')
    return {'success': True, 'message': 'Suggestion rejected'}


@router.delete('/api/dependencies/suggestions/{suggestion_id}')
def suggestion_delete(suggestion_id: str, token: str = Cookie(None)):
    if not token_user(token):
        return error_response(401, 'Unauthorized')
    if not delete_suggestion(suggestion_id=suggestion_id):
        return error_response(404, 'Suggestion not found')
    return {'success': True, 'message': 'Suggestion deleted'}


# --------------------------------------------------------------------------- #
# Aliases
# --------------------------------------------------------------------------- #

@router.get('/api/assets/{asset_id}/aliases')
def aliases_list(asset_id: str, token: str = Cookie(None)):
    if not token_user(token):
        return error_response(401, 'Non autorisé')
    return {'aliases': list_aliases(asset_id=asset_id)}


@router.post('/api/assets/{asset_id}/aliases', status_code=201)
def aliases_create(asset_id: str, data: AliasCreate, token: str = Cookie(None)):
    if not token_user(token):
        return error_response(401, 'Non autorisé')
    invalid = validate_alias(data.alias)
    if invalid:
        return error_response(400, invalid)
    try:
        res = add_alias(asset_id=asset_id, alias=data.alias, language=data.language, is_primary=data.is_primary)
    except Exception as e:
        logger.error(f"Alias creation error: {e}")
        return error_response(500, 'Erreur serveur')
    if not res['res']:
        return error_response(409, res['detail'])
    return {'alias': res['alias'], 'message': 'Alias créé avec succès'}


@router.delete('/api/assets/{asset_id}/aliases')
def aliases_delete(asset_id: str, aliasId: Optional[str] = None, token: str = Cookie(None)):
    if not token_user(token):
        return error_response(401, 'Non autorisé')
    if not aliasId:
        return error_response(400, 'Alias ID required')
    delete_alias(asset_id=asset_id, alias_id=aliasId)
    return {'success': True, 'message': 'Alias supprimé avec succès'}


# --------------------------------------------------------------------------- #
# Documents
# --------------------------------------------------------------------------- #

@router.get('/api/assets/{asset_id}/documents')
def documents_list(asset_id: str, include_archived: bool = False, token: str = Cookie(None)):
    if not token_user(token):
        return error_response(401, 'Non autorisé')
    return {'documents': list_documents(asset_id=asset_id, include_archived=include_archived)}


@router.get('/api/assets/{asset_id}/documents/next-version')
def documents_next_version(asset_id: str, file_name: Optional[str] = None, token: str = Cookie(None)):
    """Version label to propose for the next upload of a file."""
    if not token_user(token):
        return error_response(401, 'Non autorisé')
    return {'version': suggest_next_version(asset_id=asset_id, file_name=file_name)}


@router.get('/api/documents/{document_id}')
def documents_get(document_id: str, token: str = Cookie(None)):
    if not token_user(token):
        return error_response(401, 'Non autorisé')
    document = get_document(document_id=document_id)
    if document is None:
        return error_response(404, 'Document non trouvé')
    return {'document': document}


@router.patch('/api/documents/{document_id}')
def documents_update_types(document_id: str, data: DocumentTypesUpdate, token: str = Cookie(None)):
    """User confirmation of the document types."""
    if not token_user(token):
        return error_response(401, 'Non autorisé')
    if not data.document_types:
        return error_response(400, 'document_types must be a non-empty array')
    if update_document_types(document_id=document_id, document_types=data.document_types) is None:
        return error_response(404, 'Document non trouvé')
    return {'success': True, 'message': 'Types de document mis à jour', 'document_types': data.document_types}


@router.get('/api/documents/{document_id}/versions')
def documents_versions(document_id: str, token: str = Cookie(None)):
    if not token_user(token):
        return error_response(401, 'Non autorisé')
    chain = get_version_chain(document_id=document_id)
    if chain is None:
        return error_response(404, 'Document non trouvé')
    return {'versions': chain}


@router.post('/api/documents/{document_id}/supersede')
def documents_supersede(document_id: str, data: SupersedeRequest, token: str = Cookie(None)):
    """Declare `data.new_document_id` as the new revision of this document."""
    if not token_user(token):
        return error_response(401, 'Non autorisé')
    res = supersede(old_document_id=document_id, new_document_id=data.new_document_id,
                    version_notes=data.version_notes)
    if not res['res']:
        return error_response(404 if res['detail'] == 'Document non trouvé' else 400, res['detail'])
    return {'success': True, 'previous': res['old'], 'document': res['new']}


@router.post('/api/documents/{document_id}/archive')
def documents_archive(document_id: str, token: str = Cookie(None)):
    if not token_user(token):
        return error_response(401, 'Non autorisé')
    document = archive_document(document_id=document_id)
    if document is None:
        return error_response(404, 'Document non trouvé')
    return {'success': True, 'document': document}


@router.delete('/api/documents/{document_id}/archive')
def documents_unarchive(document_id: str, token: str = Cookie(None)):
    if not token_user(token):
        return error_response(401, 'Non autorisé')
    document = unarchive_document(document_id=document_id)
    if document is None:
        return error_response(404, 'Document non trouvé')
    return {'success': True, 'document': document}


@router.delete('/api/documents/{document_id}')
def documents_delete(document_id: str, token: str = Cookie(None)):
    if not token_user(token):
        return error_response(401, 'Non autorisé')
    if not delete_document(document_id=document_id):
        return error_response(404, 'Document non trouvé')
    return {'success': True, 'message': 'Document supprimé avec succès'}


# --------------------------------------------------------------------------- #
# Triage
# --------------------------------------------------------------------------- #

@router.post('/api/ai-triage')
def ai_triage(data: TriageRequest, token: str = Cookie(None)):
    """One turn of the guided triage conversation."""
    user_id = token_user(token)
    if not user_id:
        return error_response(401, 'Unauthorized')
    try:
        assets = list_assets(organization_id=user_organization(user_id), with_extraction=True)
        return triage(data.message, data.conversationHistory, sorted(assets, key=lambda a: a['name']))
    except Exception as e:
        logger.error(f"AI Triage API Error: {e}")
        return error_response(500, 'Failed to process AI triage request', details=str(e))
