"""
Listing Duplicate Detection API

Endpoints:
- GET  /health       service status
- GET  /model-info   active weights, thresholds and engine mode
- POST /features     distinctive features of one description
- POST /compare      multi-signal score of two listings
- POST /deduplicate  run the configured engine over posted listings
"""

import time
import logging
from dataclasses import replace
from typing import Optional

from flask import Flask, current_app, jsonify, request

from ..config import ProjectConfig
from ..detection import ListingComparator, create_detector
from ..exceptions import ConfigurationError
from ..features import FeatureExtractor
from ..interfaces import SegmentFilter, TextCompletionService, Vectorizer
from ..logging_config import setup_logging
from ..models import Listing, utcnow
from ..repository import InMemoryObjectRepository

logger = logging.getLogger(__name__)

SERVICE_NAME = 'listing-duplicate-detection'


def _metadata(start_time: float) -> dict:
    return {
        'response_time_seconds': round(time.time() - start_time, 3),
        'timestamp': utcnow().isoformat(),
    }


def _json_body():
    if not request.is_json:
        return None
    return request.get_json(silent=True)


def create_app(config: Optional[ProjectConfig] = None,
               vectorizer: Optional[Vectorizer] = None,
               completion_service: Optional[TextCompletionService] = None) -> Flask:
    """
    Build the Flask application.

    Args:
        config: Project configuration (environment-derived if None)
        vectorizer: Embedding backend for the hybrid engine
        completion_service: LLM for the hybrid engine

    Returns:
        Configured Flask app
    """
    config = config or ProjectConfig.from_env()
    app = Flask(__name__)
    app.config['DEDUP_CONFIG'] = config
    app.extensions['dedup'] = {
        'comparator': ListingComparator(config.scoring, config.feature_language),
        'feature_extractor': FeatureExtractor(language=config.feature_language),
        'vectorizer': vectorizer,
        'completion_service': completion_service,
    }

    @app.route('/health', methods=['GET'])
    def health_check():
        """Health check endpoint"""
        services = current_app.extensions['dedup']
        hybrid_ready = services['vectorizer'] is not None and services['completion_service'] is not None
        return jsonify({
            'status': 'healthy',
            'timestamp': utcnow().isoformat(),
            'service': SERVICE_NAME,
            'engine_mode': config.engine_mode,
            'hybrid_ready': hybrid_ready,
        })

    @app.route('/model-info', methods=['GET'])
    def model_info():
        """Scoring and engine metadata endpoint"""
        services = current_app.extensions['dedup']
        info = {
            'engine_mode': config.engine_mode,
            'embedding_model_id': config.embedding_model_id,
            'embedding_threshold': config.embedding_threshold,
            'max_candidates_for_ai': config.max_candidates_for_ai,
            'cluster_threshold': config.cluster_threshold,
            'review_threshold': config.review_threshold,
            'ai_language': config.ai_language,
            'weights': config.scoring.weights,
            'thresholds': config.scoring.thresholds,
            'signals': list(config.scoring.weights),
        }
        vectorizer_info = getattr(services['vectorizer'], 'get_model_info', None)
        if vectorizer_info is not None:
            info['vectorizer'] = vectorizer_info()
        return jsonify(info)

    @app.route('/features', methods=['POST'])
    def extract_features():
        """Distinctive features of a description"""
        data = _json_body()
        if data is None:
            return jsonify({'error': 'Request must be JSON'}), 400
        feature_set = current_app.extensions['dedup']['feature_extractor'].extract(data.get('description'))
        return jsonify(feature_set.to_dict())

    @app.route('/compare', methods=['POST'])
    def compare_listings():
        """Multi-signal comparison of two listings"""
        start_time = time.time()
        data = _json_body()
        if data is None:
            return jsonify({'error': 'Request must be JSON'}), 400
        if 'listing_1' not in data or 'listing_2' not in data:
            return jsonify({'error': 'Both listing_1 and listing_2 are required'}), 400

        try:
            listing_1 = Listing.from_dict(data['listing_1'])
            listing_2 = Listing.from_dict(data['listing_2'])
        except (ValueError, TypeError, AttributeError) as e:
            return jsonify({'error': 'Invalid listing', 'details': str(e)}), 400

        try:
            comparison = current_app.extensions['dedup']['comparator'].compare(listing_1, listing_2)
        except Exception as e:
            logger.error(f"Comparison failed: {e}")
            return jsonify({'error': 'Comparison failed', 'details': str(e),
                            'metadata': _metadata(start_time)}), 500

        logger.info(f"Compared {listing_1.id} and {listing_2.id}: {comparison.score.final:.3f} "
                    f"({comparison.score.confidence})")
        return jsonify({
            'score': comparison.score.to_dict(),
            'details': comparison.details,
            'metadata': _metadata(start_time),
        })

    @app.route('/deduplicate', methods=['POST'])
    def deduplicate():
        """Run duplicate detection over posted listings"""
        start_time = time.time()
        data = _json_body()
        if data is None:
            return jsonify({'error': 'Request must be JSON'}), 400
        if not isinstance(data.get('listings'), list):
            return jsonify({'error': 'listings must be a list'}), 400

        listings, rejected = [], []
        for position, record in enumerate(data['listings']):
            try:
                listings.append(Listing.from_dict(record))
            except (ValueError, TypeError, AttributeError) as e:
                logger.warning(f"Skipping listing record {position}: {e}")
                rejected.append({'index': position, 'details': str(e)})

        try:
            run_config = replace(config, engine_mode=data['mode']) if data.get('mode') else config
        except ConfigurationError as e:
            return jsonify({'error': 'Invalid request', 'details': str(e)}), 400

        services = current_app.extensions['dedup']
        repository = InMemoryObjectRepository(listings)
        try:
            detector = create_detector(run_config, repository, services['vectorizer'],
                                       services['completion_service'])
            results = detector.run(repository.listings, listing_ids=data.get('listing_ids'),
                                   segment_filter=SegmentFilter.from_dict(data.get('filters')))
        except ConfigurationError as e:
            logger.error(f"Deduplication not available: {e}")
            return jsonify({'error': 'Deduplication not available', 'details': str(e)}), 503

        results.errors += len(rejected)
        results.skipped += len(rejected)
        return jsonify({
            'results': results.to_dict(),
            'rejected': rejected,
            'objects': [obj.to_dict() for obj in repository.objects],
            'listings': [
                {'id': l.id, 'object_id': l.object_id, 'processing_status': l.processing_status.value}
                for l in repository.listings
            ],
            'metadata': _metadata(start_time),
        })

    return app


if __name__ == '__main__':
    from ..embeddings import EmbeddingCache, SentenceTransformerVectorizer

    project_config = ProjectConfig.from_env()
    project_config.ensure_directories()
    setup_logging(project_config)
    logger.info("Starting Listing Duplicate Detection API...")

    cache = EmbeddingCache()
    if project_config.cache_embeddings:
        cache.load(project_config.embedding_cache_path)
    api_vectorizer = SentenceTransformerVectorizer(project_config.embedding_model_id, cache=cache,
                                                   batch_size=project_config.embedding_batch_size)

    app = create_app(project_config, vectorizer=api_vectorizer)
    try:
        app.run(host=project_config.api_host, port=project_config.api_port, debug=project_config.api_debug)
    finally:
        if project_config.cache_embeddings:
            cache.save(project_config.embedding_cache_path)
