"""
Smart retrieval for the asset assistant.

The query analysis decides where to look: the asset's document chunks (vector
match), the dependency chain around the asset, the manuals of the closest
upstream equipment when troubleshooting, and the child assets of a site, line
or subsystem. Results are merged by relevance and rendered into the French
system prompt of the chat model.

Chunk vectors are stored as JSON arrays and scored in process with numpy
cosine similarity.
"""

from opengmao.database.helpers.transactionManagement import transactional
from opengmao.database.helpers.identifiers import to_uuid
from opengmao.database.daos.asset_dao import AssetDao
from opengmao.database.daos.document_dao import DocumentDao
from opengmao.database.daos.dependency_dao import DependencyDao
from opengmao.dependencies.graph import get_dependency_chain, format_dependency_chain
from opengmao.rag.embeddings import generate_embedding, cosine_similarity
from sqlalchemy.orm import Session
from typing import List, Optional, Sequence
import logging

logger = logging.getLogger("uvicorn")

MATCH_THRESHOLD = 0.25
MATCH_COUNT = 10
UPSTREAM_MATCH_THRESHOLD = 0.4
UPSTREAM_MATCH_COUNT = 3
UPSTREAM_ASSETS_SEARCHED = 2
UPSTREAM_DISCOUNT = 0.8
MAX_RESULTS = 15

DEPENDENCY_SIMILARITY = 0.85
HIERARCHY_SIMILARITY = 0.8
HIERARCHY_SCOPES = ("site", "line", "subsystem")

INTENT_KEYWORDS = {
    "troubleshooting": ["diagnostic", "panne", "erreur", "solution", "cause"],
    "maintenance": ["entretien", "maintenance", "périodique", "préventif", "intervalle"],
    "installation": ["installation", "mise en service", "configuration", "branchement"],
    "parts": ["pièce", "référence", "rechange", "code article"],
    "specs": ["caractéristique", "spécification", "technique", "dimension"],
    "procedure": ["procédure", "étape", "méthode", "comment"],
}

LEVEL_LABELS = {
    "line": "Lignes",
    "subsystem": "Sous-systèmes",
    "equipment": "Équipements",
    "component": "Composants",
}


def build_enhanced_query(query: str, analysis: dict) -> str:
    """Query text to embed: the question plus two intent keywords, components and error codes."""
    enhanced = query
    keywords = INTENT_KEYWORDS.get(analysis.get("intent"), [])
    if keywords:
        enhanced += " " + " ".join(keywords[:2])
    if analysis.get("components_mentioned"):
        enhanced += " " + " ".join(analysis["components_mentioned"])
    if analysis.get("error_codes"):
        enhanced += " " + " ".join(analysis["error_codes"])
    return enhanced


def rank_chunks(query_embedding: Sequence[float], rows, threshold: float = MATCH_THRESHOLD,
                count: int = MATCH_COUNT, asset_name: str = "") -> List[dict]:
    """
    Score stored chunks against a query vector.

    Parameters
    ----------
    query_embedding : sequence of float
        Query vector.
    rows : iterable of (DocumentChunk, AssetDocument | None)
        Candidate chunks.
    threshold : float
        Chunks must score strictly above it.
    count : int
        Maximum number of results.
    asset_name : str
        Label of the asset the chunks belong to (empty for the selected one).

    Returns
    -------
    list[dict]
        Search results, most similar first.
    """
    results = []
    for chunk, document in rows:
        similarity = cosine_similarity(query_embedding, chunk.embedding or [])
        if similarity <= threshold:
            continue
        metadata = dict(chunk.chunk_metadata or {})
        if document is not None:
            metadata.setdefault("source_file", document.file_name)
        results.append({
            "content": chunk.content,
            "source_type": "manual",
            "asset_name": asset_name,
            "page_number": chunk.page_number or metadata.get("page_number"),
            "similarity": similarity,
            "metadata": metadata,
        })
    results.sort(key=lambda r: r["similarity"], reverse=True)
    return results[:count]


@transactional
def match_document_chunks(session: Session, query_embedding: Sequence[float], asset_ids: List[str],
                          threshold: float = MATCH_THRESHOLD, count: int = MATCH_COUNT,
                          document_types: Optional[List[str]] = None, asset_name: str = "") -> List[dict]:
    """Vector match over the chunks of some assets, optionally restricted to document types."""
    rows = DocumentDao().fetchChunksForSearch(session, [to_uuid(a) for a in asset_ids], document_types)
    return rank_chunks(query_embedding, rows, threshold, count, asset_name)


def format_dependencies_for_context(upstream: List[dict], downstream: List[dict]) -> str:
    content = "\n🔗 DÉPENDANCES SYSTÈME\n\n"
    if upstream:
        content += "⬆️ AMONT (ce qui alimente cet équipement):\n"
        content += "".join(f"  • {node['name']} [{node['relationship']}]\n" for node in upstream)
        content += "\n"
    if downstream:
        content += "⬇️ AVAL (ce qui dépend de cet équipement):\n"
        content += "".join(f"  • {node['name']} [{node['relationship']}]\n" for node in downstream)
        content += "\n"
    content += "💡 En cas de panne: vérifier d'abord les équipements amont, puis avertir sur l'impact aval.\n"
    return content


def format_hierarchy_for_context(children: List[dict]) -> str:
    content = "\n🏭 ÉQUIPEMENTS DANS CETTE ZONE\n\n"
    by_level = {}
    for child in children:
        by_level.setdefault(child.get("level") or "equipment", []).append(child)
    for level, items in by_level.items():
        content += f"{LEVEL_LABELS.get(level, level)}:\n"
        content += "".join(f"  • {item['name']}\n" for item in items)
        content += "\n"
    return content


CRITICALITY_ICONS = {"critical": "🔴", "high": "🟠"}
MAX_PATH_DEPTH = 10


@transactional
def get_hierarchy_context(session: Session, asset_id: str) -> dict:
    """
    Where an asset sits: path from the root, siblings, children and direct dependencies.

    Returns
    -------
    dict
        {'path', 'siblings', 'children', 'upstream', 'downstream'}; the
        dependency lists hold {'id', 'name', 'type', 'criticality'}.
    """
    asset_dao = AssetDao()
    dependency_dao = DependencyDao()
    asset = asset_dao.fetchAssetById(session, to_uuid(asset_id))
    if asset is None:
        return {"path": [], "siblings": [], "children": [], "upstream": [], "downstream": []}

    path = [asset]
    current = asset
    while current.parent_id is not None and len(path) < MAX_PATH_DEPTH:
        current = asset_dao.fetchAssetById(session, current.parent_id)
        if current is None:
            break
        path.insert(0, current)

    siblings = []
    if asset.parent_id is not None:
        siblings = [a for a in asset_dao.fetchChildAssets(session, asset.parent_id) if a.id != asset.id]

    def dependency(dep, other):
        return {"id": str(other.id), "name": other.name, "type": dep.dependency_type, "criticality": dep.criticality}

    return {
        "path": [{"id": str(a.id), "name": a.name, "level": a.level} for a in path],
        "siblings": [{"id": str(a.id), "name": a.name, "level": a.level} for a in siblings],
        "children": [{"id": str(a.id), "name": a.name, "level": a.level}
                     for a in asset_dao.fetchChildAssets(session, asset.id)],
        "upstream": [dependency(d, a) for d, a in dependency_dao.fetchUpstream(session, asset.id)],
        "downstream": [dependency(d, a) for d, a in dependency_dao.fetchDownstream(session, asset.id)],
    }


def format_hierarchy_for_prompt(context: dict, asset_name: str) -> str:
    text = ""
    if len(context["path"]) > 1:
        text += f"📍 EMPLACEMENT: {' → '.join(p['name'] for p in context['path'])}\n\n"
    if context["siblings"]:
        text += "🔧 ÉQUIPEMENTS DANS LA MÊME ZONE:\n"
        text += "".join(f"   - {s['name']}\n" for s in context["siblings"])
        text += "\n"
    if context["children"]:
        text += f"📦 SOUS-COMPOSANTS DE {asset_name}:\n"
        text += "".join(f"   - {c['name']}\n" for c in context["children"])
        text += "\n"
    for key, title in (("upstream", f"⬆️ DÉPENDANCES AMONT (ce qui alimente {asset_name}):\n"),
                       ("downstream", f"⬇️ DÉPENDANCES AVAL (ce qui dépend de {asset_name}):\n")):
        if context[key]:
            text += title
            for dep in context[key]:
                text += f"   {CRITICALITY_ICONS.get(dep['criticality'], '🟡')} {dep['name']} [{dep['type']}]\n"
            text += "\n"
    return text


@transactional
def smart_search(session: Session, asset_id: str, query: str, analysis: dict, max_results: int = MAX_RESULTS,
                 document_types: Optional[List[str]] = None) -> List[dict]:
    """
    Gather the context of a chat question.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session (injected by @transactional).
    asset_id : str
        Selected asset.
    query : str
        Question, aliases already replaced by official names.
    analysis : dict
        Output of the query analyzer.
    max_results : int
        Number of results kept after merging.
    document_types : list[str], optional
        Restrict the asset's own chunks to these document types.

    Returns
    -------
    list[dict]
        {'content', 'source_type' ('manual' | 'dependency' | 'hierarchy'),
        'asset_name', 'page_number', 'similarity', 'metadata'} sorted by
        similarity.
    """
    enhanced = build_enhanced_query(query, analysis)
    logger.info(f"🔍 Enhanced query: {enhanced[:100]}...")
    query_embedding = generate_embedding(enhanced)

    results = match_document_chunks(query_embedding=query_embedding, asset_ids=[asset_id],
                                    document_types=document_types)

    if analysis.get("search_in_dependencies"):
        logger.info("🔗 Adding dependency context...")
        chain = get_dependency_chain(asset_id=asset_id)
        upstream = [n for n in chain["upstream"] if n["distance"] == 1]
        downstream = [n for n in chain["downstream"] if n["distance"] == 1]
        if upstream or downstream:
            results.append({
                "content": format_dependencies_for_context(upstream, downstream),
                "source_type": "dependency",
                "asset_name": "",
                "page_number": None,
                "similarity": DEPENDENCY_SIMILARITY,
                "metadata": {},
            })
        if upstream and analysis.get("intent") == "troubleshooting":
            for node in upstream[:UPSTREAM_ASSETS_SEARCHED]:
                for result in match_document_chunks(query_embedding=query_embedding, asset_ids=[node["id"]],
                                                     threshold=UPSTREAM_MATCH_THRESHOLD,
                                                     count=UPSTREAM_MATCH_COUNT, asset_name=node["name"]):
                    result["similarity"] *= UPSTREAM_DISCOUNT
                    result["metadata"]["from_dependency"] = True
                    results.append(result)

    if analysis.get("scope") in HIERARCHY_SCOPES:
        logger.info("🏭 Adding hierarchy context...")
        children = AssetDao().fetchChildAssets(session, to_uuid(asset_id))
        if children:
            results.append({
                "content": format_hierarchy_for_context([{"name": c.name, "level": c.level} for c in children]),
                "source_type": "hierarchy",
                "asset_name": "",
                "page_number": None,
                "similarity": HIERARCHY_SIMILARITY,
                "metadata": {},
            })

    results.sort(key=lambda r: r["similarity"], reverse=True)
    return results[:max_results]


def build_context(results: List[dict]) -> str:
    """Numbered sources, each with a header naming its kind, asset, page and relevance."""
    blocks = []
    for i, result in enumerate(results, start=1):
        header = f"[Source {i}"
        if result["source_type"] == "dependency":
            header += " - DÉPENDANCES"
        if result["source_type"] == "hierarchy":
            header += " - HIÉRARCHIE"
        if result.get("asset_name"):
            header += f" - {result['asset_name']}"
        if result.get("page_number"):
            header += f" - Page {result['page_number']}"
        header += f" - {round(result['similarity'] * 100)}%]\n"
        blocks.append(header + result["content"])
    return "\n\n---\n\n".join(blocks)


def context_quality(avg_similarity: float) -> str:
    if avg_similarity > 0.6:
        return "high"
    if avg_similarity > 0.4:
        return "medium"
    return "low"


def search_summary(results: List[dict]) -> dict:
    """Retrieval statistics sent with the last chat frame."""
    average = sum(r["similarity"] for r in results) / len(results) if results else 0.0
    source_types = []
    for result in results:
        if result["source_type"] not in source_types:
            source_types.append(result["source_type"])
    return {
        "sources_used": len(results),
        "source_types": source_types,
        "avg_relevance": round(average * 100),
        "context_quality": context_quality(average),
    }


def get_dependency_context(asset_id: str, analysis: dict) -> str:
    """Process chain for the prompt when the question is about a failure; empty otherwise."""
    wanted = analysis.get("intent") in ("troubleshooting", "explanation") or analysis.get("search_in_dependencies")
    if not wanted:
        return ""
    try:
        return format_dependency_chain(get_dependency_chain(asset_id=asset_id))
    except Exception as e:
        logger.error(f"Error in get_dependency_context: {e}")
        return ""


INTENT_INSTRUCTIONS = {
    "troubleshooting": """
🔧 MODE DIAGNOSTIC
Tu dois aider à résoudre un problème. Suis cette approche:
1. Identifier les causes possibles (de la plus probable à la moins probable)
2. Proposer un diagnostic séquentiel (vérifier A, puis B, puis C)
3. Utiliser les dépendances pour guider le diagnostic
4. Mentionner les équipements amont/aval qui pourraient causer le problème
5. Donner la solution pour chaque cause identifiée
""",
    "maintenance": """
🔧 MODE MAINTENANCE
Fournis des informations de maintenance:
1. Intervalles recommandés (heures, jours, mois)
2. Procédures étape par étape
3. Points de contrôle importants
4. Pièces d'usure à vérifier
5. Outils nécessaires
""",
    "installation": """
🔧 MODE INSTALLATION
Guide l'installation/mise en service:
1. Prérequis et préparation du site
2. Étapes d'installation séquentielles
3. Branchements et connexions
4. Paramètres de configuration
5. Tests de validation finale
""",
    "parts": """
📦 MODE PIÈCES DE RECHANGE
Fournis les informations sur les pièces:
1. Référence exacte du fabricant
2. Description détaillée
3. Quantité recommandée en stock
4. Alternatives compatibles si disponibles
5. Fournisseurs possibles
""",
    "specs": """
📊 MODE SPÉCIFICATIONS
Fournis les caractéristiques techniques:
1. Données organisées clairement
2. Unités de mesure précises
3. Tolérances et plages acceptables
4. Conditions de fonctionnement
5. Limites et capacités
""",
    "procedure": """
📋 MODE PROCÉDURE
Fournis des instructions étape par étape:
1. Numéroter clairement les étapes
2. Être précis et concret
3. Mentionner les outils nécessaires
4. Inclure les points de vérification
5. Indiquer le temps estimé
""",
    "general": """
💬 MODE INFORMATION
Réponds de manière claire et informative.
Structurer la réponse avec des titres si nécessaire.
""",
}

FORMAT_INSTRUCTIONS = {
    "diagnostic": """
FORMAT DE RÉPONSE - DIAGNOSTIC:
🔴 PROBLÈME IDENTIFIÉ: [résumé du problème]

🔍 CAUSES POSSIBLES:
   1. Cause 1 (probabilité haute) - Explication
   2. Cause 2 (probabilité moyenne) - Explication

🔧 DIAGNOSTIC ÉTAPE PAR ÉTAPE:
   Étape 1: Vérifier [X] → Si défaillant, aller à la solution 1
   Étape 2: Si OK, vérifier [Y] → Si défaillant, aller à la solution 2

✅ SOLUTIONS:
   Solution 1: [action corrective pour cause 1]
   Solution 2: [action corrective pour cause 2]

⚠️ IMPACT SYSTÈME: [équipements affectés si non résolu]
""",
    "steps": """
FORMAT DE RÉPONSE - ÉTAPES NUMÉROTÉES:
Utiliser des numéros pour chaque étape:

1. **Première action**
   - Détail si nécessaire
   - Outil requis

2. **Deuxième action**
   - Sous-étape a
   - Sous-étape b

3. **Vérification**
   Point de contrôle avant de continuer
""",
    "list": """
FORMAT DE RÉPONSE - LISTE:
Utiliser des puces (•) pour lister les éléments:

**Catégorie 1:**
• Élément 1: valeur
• Élément 2: valeur
""",
    "table": """
FORMAT DE RÉPONSE - STRUCTURÉ:
Présenter les données de manière organisée:

| Référence | Description | Quantité |
|-----------|-------------|----------|
| REF-001   | Pièce A     | 2        |
""",
    "explanation": """
FORMAT DE RÉPONSE - EXPLICATION:
Répondre de manière claire et structurée.
Utiliser des paragraphes courts.
Mettre en **gras** les points importants.
""",
}

SAFETY_INSTRUCTIONS = """
⚠️ SÉCURITÉ OBLIGATOIRE:
- Mentionner les EPI nécessaires (gants, lunettes, casque, etc.)
- Avertir des dangers (électrique, pression, température, pièces mobiles)
- Rappeler de consigner l'équipement si nécessaire
- Préciser les zones dangereuses
"""

PARTS_INSTRUCTIONS = """
📦 PIÈCES DE RECHANGE:
- Si des pièces sont mentionnées dans le contexte, les lister avec leurs références
- Indiquer les quantités si disponibles
- Mentionner les alternatives compatibles si connues
"""

LANGUAGE_INSTRUCTIONS = """
🌐 LANGUE:
- Réponds en français par défaut
- Si l'utilisateur écrit en Darija/arabe marocain, réponds en Darija
- Utilise un langage technique mais accessible
"""

NO_CONTEXT_WARNING = """
⚠️ ATTENTION: Aucun contexte technique trouvé dans les manuels.
Indique-le clairement et donne des conseils généraux basés sur tes connaissances.
"""

EMERGENCY_INSTRUCTIONS = """
🚨 SITUATION URGENTE DÉTECTÉE
Priorité: Donner une solution rapide en premier, puis les détails.
Format: Commencer par "🔴 ACTION IMMÉDIATE:" suivi des étapes critiques.
Ensuite fournir les explications et causes possibles.
"""


def build_system_prompt(asset: dict, analysis: dict, context: str, hierarchy_context: str = "") -> str:
    """
    System prompt of the chat model, adapted to the intent, format and urgency of the question.

    Parameters
    ----------
    asset : dict
        Selected asset (name, manufacturer, model_number, category).
    analysis : dict
        Query analysis.
    context : str
        Output of `build_context`.
    hierarchy_context : str
        Optional description of the asset's surroundings.
    """
    prompt = "Tu es un assistant technique expert pour la maintenance industrielle.\n\n"
    prompt += f"ÉQUIPEMENT: {asset['name']}\n"
    if asset.get("manufacturer"):
        prompt += f"Fabricant: {asset['manufacturer']}\n"
    if asset.get("model_number"):
        prompt += f"Modèle: {asset['model_number']}\n"
    if asset.get("category"):
        prompt += f"Catégorie: {asset['category']}\n"
    prompt += "\n"
    if hierarchy_context:
        prompt += hierarchy_context + "\n"

    prompt += INTENT_INSTRUCTIONS.get(analysis.get("intent"), INTENT_INSTRUCTIONS["general"])
    prompt += FORMAT_INSTRUCTIONS.get(analysis.get("response_format"), FORMAT_INSTRUCTIONS["explanation"])
    if analysis.get("include_safety_warning"):
        prompt += SAFETY_INSTRUCTIONS
    if analysis.get("include_parts_list"):
        prompt += PARTS_INSTRUCTIONS
    prompt += LANGUAGE_INSTRUCTIONS

    if context:
        prompt += f'\nCONTEXTE TECHNIQUE:\n"""\n{context}\n"""\n\n'
    else:
        prompt += NO_CONTEXT_WARNING

    if analysis.get("urgency") == "emergency":
        prompt += EMERGENCY_INSTRUCTIONS
    return prompt
