"""
インフラ層のパッケージ初期化。
"""
