"""版本控制拉取: git 封装、仓库根发现、vendor 拉取器"""
