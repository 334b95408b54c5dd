"""
Le Marché Luxe — products/catalogue.py

Référentiel du catalogue : catégories, marques et états proposés
dans le formulaire de dépôt d'annonce.
"""

# Catégories racines → sous-catégories (chargées par `manage.py charger_categories`)
CATEGORIES = {
    'Sacs': [
        'Sac à main', 'Sac à bandoulière', 'Sac à dos', 'Sac de voyage', 'Pochette',
    ],
    'Chaussures': [
        'Escarpins', 'Sandales', 'Baskets', 'Bottes', 'Mocassins',
    ],
    'Vêtements': [
        'Robes', 'Vestes', 'Manteaux', 'Pantalons', 'Jupes', 'Hauts',
    ],
    'Accessoires': [
        'Ceintures', 'Foulards', 'Lunettes', 'Portefeuilles', 'Chapeaux',
    ],
    'Montres': [
        'Montres homme', 'Montres femme', 'Montres unisexe',
    ],
    'Bijoux': [
        'Colliers', 'Bracelets', 'Bagues', "Boucles d'oreilles",
    ],
}

# Choisir AUTRE impose de saisir la marque à la main
MARQUE_AUTRE = 'Autre'

MARQUES = [
    'Hermès',
    'Louis Vuitton',
    'Chanel',
    'Dior',
    'Gucci',
    'Prada',
    'Cartier',
    'Rolex',
    'Van Cleef & Arpels',
    'Bulgari',
    MARQUE_AUTRE,
]
