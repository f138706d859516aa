"""
Extraction Prompts
==================

French system/user prompts for the five extraction passes and the two
focused retries. Every user prompt ends with a ``{text}`` placeholder that
``build_user_prompt`` fills with the selected document text. The templates
contain literal JSON examples, so they are filled with ``str.replace`` and
never with ``str.format``.
"""

TEXT_PLACEHOLDER = "{text}"

JSON_ONLY = "Réponds UNIQUEMENT avec un objet JSON valide, sans texte autour."


# Pass 1: main asset, model range, mechanical components

PASS1_SYSTEM_PROMPT = f"""Tu extrais des données techniques depuis des manuels d'équipements industriels.
Objectif: l'équipement principal, sa gamme de modèles et ses composants mécaniques.

Règles:
1. Chaque ligne d'un tableau de spécifications est extraite, jamais un échantillon.
2. Chaque variante de modèle donne sa propre configuration.
3. Chaque composant reçoit un identifiant unique.
4. Les valeurs numériques sont des nombres, pas des chaînes.
5. {JSON_ONLY}"""

PASS1_USER_PROMPT = """Extrais de ce manuel:

1. main_asset: nom complet, fabricant, numéro(s) de modèle, catégorie
   (compressor, pump, motor, generator, other), criticité (low, medium, high,
   critical) et les spécifications générales.
2. model_configurations: les tableaux de gamme (colonnes HP/kW, pression,
   débit). Une entrée par modèle, une configuration par ligne du tableau.
   Tableau absent: liste vide.
3. components: moteurs, compresseurs ou pompes, filtres, vannes, réservoirs,
   refroidisseurs, avec leurs spécifications.

Format attendu:
{
  "main_asset": {
    "name": "string",
    "manufacturer": "string ou null",
    "model_number": "string ou liste de strings",
    "category": "compressor|pump|motor|generator|other",
    "criticality": "low|medium|high|critical",
    "specifications": {"clé": "valeur"}
  },
  "model_configurations": [
    {
      "model": "5.5 HP",
      "power_hp": 5.5,
      "power_kw": 4.0,
      "configurations": [
        {"pressure_bar": 8, "pressure_psi": 116, "air_flow_lmin": 560, "air_flow_cfm": 19.8,
         "noise_dba": 65, "power_consumption_kw": 4.5, "weight_kg": 180},
        {"pressure_bar": 10, "air_flow_lmin": 450}
      ]
    }
  ],
  "components": [
    {
      "id": "identifiant-unique",
      "name": "string",
      "part_number": "string ou null",
      "type": "motor|compressor|pump|valve|filter|heat_exchanger|tank|fan|other",
      "location": "string",
      "function": "string ou null",
      "specifications": {}
    }
  ]
}

DOCUMENT:
{text}"""


# Pass 2: integrated subsystems

PASS2_SYSTEM_PROMPT = f"""Tu extrais les sous-systèmes intégrés décrits dans des manuels techniques:
sécheurs (réfrigérés, à adsorption), refroidissement, filtration, lubrification,
contrôle et sécurité.

Règles:
1. Un sous-système a souvent sa propre section du manuel.
2. Les panneaux de contrôle sont extraits avec tous leurs paramètres programmables.
3. Tous les codes d'alarme propres au sous-système sont extraits.
4. {JSON_ONLY}"""

PASS2_USER_PROMPT = """Extrais les sous-systèmes intégrés de ce manuel (sections "Sécheur", "Dryer",
"Air Treatment", "Cooling System", "Refroidissement", "Filtration", "Controller").

Pour chaque sous-système: ses composants, son panneau de contrôle (boutons,
affichages, voyants, paramètres programmables), ses codes d'alarme et sa
maintenance par période.

Format attendu:
{
  "integrated_subsystems": [
    {
      "id": "identifiant-unique",
      "name": "Sécheur réfrigéré",
      "type": "dryer|cooling|filtration|lubrication|control|safety|other",
      "function": "string",
      "components": [
        {"name": "string", "type": "string", "part_number": "string ou null", "specifications": {}}
      ],
      "control_panel": {
        "type": "string",
        "model": "string ou null",
        "buttons": ["string"],
        "displays": ["string"],
        "indicators": ["string"],
        "programmable_parameters": [
          {"code": "P01", "description": "Consigne température", "range": "2-10°C",
           "default_value": "3", "unit": "°C"}
        ]
      },
      "alarm_codes": [
        {"code": "HtA", "description": "Haute température air", "action": "Vérifier le condenseur",
         "reset_condition": "Automatique"}
      ],
      "maintenance": {"daily": [], "weekly": [], "monthly": [], "yearly": []}
    }
  ]
}

DOCUMENT:
{text}"""


# Pass 3: electrical components, motor protection, control sequences

PASS3_SYSTEM_PROMPT = f"""Tu extrais les données électriques de manuels techniques.

À extraire en priorité: contacteurs (K1, K2, KR, KV), relais (thermiques F1,
temporisés KA, de phase), fusibles et calibres, transformateurs, capteurs (BT,
BP, débit), interrupteurs (arrêt d'urgence AU, fin de course), variateurs.

Tableaux à chercher: légende électrique (repère, FR, EN, description),
réglages de protection moteur par puissance, codes couleur des fils.

{JSON_ONLY}"""

PASS3_USER_PROMPT = """Extrais de la partie électrique de ce manuel:

1. electrical_components: chaque repère de la légende (K1, F1, BT, AU...),
   son nom en français et en anglais si disponibles, son type, sa fonction
   et ses spécifications (calibre, tension, courant).
2. motor_protection_settings: les petits tableaux puissance moteur / réglage
   du relais thermique / fusible. Tableau absent: liste vide.
3. control_sequences: démarrage étoile-triangle, séquences de sécurité.

Même sans motor_protection_settings, tous les composants de la légende sont extraits.

Format attendu:
{
  "electrical_components": [
    {
      "id": "identifiant-unique",
      "reference": "K1",
      "name": "Contacteur principal",
      "name_fr": "Contacteur ligne",
      "name_en": "Line contactor",
      "type": "contactor|relay|fuse|transformer|sensor|switch|motor_starter|vfd|other",
      "function": "Alimentation moteur principal",
      "specifications": {"rating": "40A", "voltage": "400V"}
    }
  ],
  "motor_protection_settings": [
    {"motor_power_hp": 5.5, "motor_power_kw": 4.0, "voltage": "380-415V",
     "thermal_relay_setting_a": 5.0, "fuse_rating_a": 16}
  ],
  "control_sequences": [
    {"name": "Démarrage étoile-triangle", "description": "Réduction du courant de démarrage",
     "steps": ["Contact étoile", "Temporisation", "Contact triangle"]}
  ]
}

DOCUMENT:
{text}"""


# Pass 4: raw specification tables

PASS4_SYSTEM_PROMPT = f"""Tu extrais les tableaux de spécifications techniques avec une couverture complète.

Cherche d'abord les tableaux de gamme (titres "Technical Specifications",
"Model Range", "Caractéristiques Techniques", "Gamme", "Données Techniques",
"Technische Daten"): colonnes puissance et performance, 3 lignes ou plus,
données numériques denses.

Puis les autres tableaux: performances par modèle et pression, données
électriques, dimensions et poids, plages de fonctionnement, consommation.

Un tableau de 15 lignes donne 15 lignes dans la sortie: pas d'échantillon,
pas de résumé.

{JSON_ONLY}"""

PASS4_USER_PROMPT = """Extrais tous les tableaux de spécifications de ce document, chacun avec son
nom, ses colonnes et unités, toutes ses lignes et ses notes.

Format attendu:
{
  "specification_tables": [
    {
      "table_name": "Performances air/pression",
      "section": "Technical Specifications",
      "columns": ["Model", "Pressure (bar)", "Flow (l/min)", "Noise (dBA)"],
      "units": {"Pressure (bar)": "bar", "Flow (l/min)": "l/min", "Noise (dBA)": "dB(A)"},
      "rows": [
        {"Model": "5.5HP", "Pressure (bar)": 8, "Flow (l/min)": 560, "Noise (dBA)": 67},
        {"Model": "5.5HP", "Pressure (bar)": 10, "Flow (l/min)": 450, "Noise (dBA)": 68}
      ],
      "footnotes": ["Mesuré selon ISO 1217"],
      "conditions": ["Température ambiante 20°C"]
    }
  ]
}

DOCUMENT:
{text}"""


# Pass 5: maintenance schedule, spare parts, diagnostic codes

PASS5_SYSTEM_PROMPT = f"""Tu extrais les plannings de maintenance et les codes de diagnostic de manuels techniques.

Intervalles: rodage (premières heures), quotidien, hebdomadaire, mensuel,
toutes les X heures (500, 1000, 2500, 5000, 10000), annuel, pluriannuel.

Codes: code affiché, description, causes possibles, actions correctives,
procédure de réinitialisation, sévérité.

{JSON_ONLY}"""

PASS5_USER_PROMPT = """Extrais de ce manuel:

1. maintenance_schedule: rodage, tâches quotidiennes, hebdomadaires et
   mensuelles, puis la liste complète des tâches pour chaque intervalle en heures.
2. spare_parts: nom, référence, intervalle de remplacement, quantité, criticité.
3. diagnostic_codes: tous les codes d'alarme ou d'erreur.

Format attendu:
{
  "maintenance_schedule": {
    "break_in": {"interval": "Premières 500 heures", "tasks": ["Vidange huile"]},
    "daily": ["Vérifier niveau huile"],
    "weekly": ["Nettoyer préfiltre"],
    "monthly": ["Vérifier courroies"],
    "routine": [
      {
        "interval_hours": 500,
        "interval_description": "Toutes les 500 heures ou 3 mois",
        "tasks": [
          {"task": "Vidange huile compresseur", "component": "Carter huile",
           "procedure": "Vidanger à chaud", "estimated_time_minutes": 30}
        ]
      }
    ]
  },
  "spare_parts": [
    {"id": "identifiant-unique", "name": "Filtre à huile", "part_number": "1621-5426-00",
     "replacement_interval_hours": 2500, "replacement_interval_description": "Annuel ou 2500h",
     "quantity": 1, "unit": "pièce", "criticality": "critical|important|routine", "estimated_cost": 45}
  ],
  "diagnostic_codes": [
    {"id": "identifiant-unique", "code": "E01", "display": "E01 - High Temp",
     "description": "Température élément trop élevée",
     "possible_causes": ["Radiateur obstrué"], "corrective_actions": ["Nettoyer le radiateur"],
     "reset_procedure": "Automatique après refroidissement", "severity": "warning|alarm|shutdown"}
  ]
}

DOCUMENT:
{text}"""


# Focused retries

RETRY_MODEL_CONFIGURATIONS_SYSTEM_PROMPT = (
    "Tu es un expert en extraction de tableaux de spécifications techniques. "
    "Réponds uniquement en JSON valide."
)

RETRY_MODEL_CONFIGURATIONS_PROMPT = """Une seule tâche: trouver le tableau de gamme produits (variantes de modèles).

Le tableau cherché a au moins 3 lignes et des colonnes de puissance (HP/kW)
avec des valeurs de performance (pression, débit, capacité). Il se trouve en
général dans les 15 premières pages, sous un titre "Technical Specifications",
"Models", "Gamme" ou "Données Techniques".

Tableau trouvé: extrais chaque ligne.
Tableau absent: retourne {"model_configurations": []}

Format attendu:
{
  "model_configurations": [
    {
      "model": "5.5 HP",
      "power_hp": 5.5,
      "power_kw": 4.0,
      "configurations": [
        {"pressure_bar": 8, "air_flow_lmin": 560, "noise_dba": 65},
        {"pressure_bar": 10, "air_flow_lmin": 450, "noise_dba": 66}
      ]
    }
  ]
}

DOCUMENT:
{text}"""

RETRY_MOTOR_PROTECTION_SYSTEM_PROMPT = (
    "Tu es un expert en extraction de données électriques. "
    "Réponds uniquement en JSON valide."
)

RETRY_MOTOR_PROTECTION_PROMPT = """Une seule tâche: trouver le tableau des réglages de protection moteur.

Le tableau cherché est petit (3 à 10 lignes), avec une colonne de puissance
moteur (HP ou kW) et une colonne d'ampérage ("5.0A", "6.5A"). Titres
habituels: "Thermal Relay", "F1 Settings", "Protection", "Réglage Relais". Il
est en général près des schémas et de la légende électrique.

Tableau trouvé: extrais toutes les lignes avec les valeurs exactes.
Tableau absent: retourne {"motor_protection_settings": []}

Format attendu:
{
  "motor_protection_settings": [
    {"motor_power_hp": 5.5, "motor_power_kw": 4.0, "voltage": "380-415V", "start_method": "DOL",
     "thermal_relay_setting_a": 5.0, "fuse_rating_a": 16}
  ]
}

DOCUMENT:
{text}"""


def build_user_prompt(template: str, text: str) -> str:
    """Fill the ``{text}`` placeholder of a pass template."""
    return template.replace(TEXT_PLACEHOLDER, text)
